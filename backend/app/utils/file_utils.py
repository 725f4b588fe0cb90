"""
Attachment storage
---------------------------------
Features:
- Saves uploaded files under `UPLOAD_DIR/feedback/`
- Returns the absolute path (file operations) and the relative path
  (stored on the ticket and served to the frontend)

Storage layout:
- Files on local disk: <UPLOAD_DIR>/feedback/
- Tickets store the relative path, e.g. /uploads/feedback/<uuid>_photo.png
- Naming: <uuid>_<original name>, so uploads never overwrite each other

Swapping in object storage (S3, ...) only requires replacing this module.
"""

from pathlib import Path
from uuid import uuid4
from typing import Tuple

from fastapi import UploadFile

from ..config import settings

ALLOWED_CONTENT_PREFIXES = ("image/", "application/pdf", "video/")


def is_allowed_content_type(content_type: str | None) -> bool:
    return bool(content_type) and content_type.startswith(ALLOWED_CONTENT_PREFIXES)


async def save_upload_file(file: UploadFile, content: bytes) -> Tuple[Path, str]:
    """Store an attachment.

    Args:
        file: the uploaded file (used for its name)
        content: the bytes already read and size-checked by the caller

    Returns:
        Tuple[Path, str]: (absolute path, relative path such as /uploads/feedback/uuid_file.png)
    """
    target = settings.FEEDBACK_UPLOAD_DIR
    target.mkdir(parents=True, exist_ok=True)

    original_name = Path(file.filename or "upload.bin").name
    safe_name = f"{uuid4().hex}_{original_name}"
    save_path = target / safe_name

    with save_path.open("wb") as out:
        out.write(content)

    relative_path = f"/uploads/feedback/{safe_name}"
    return save_path.resolve(), relative_path
