"""
Feedback ticket routes
---------------------------------
Features:
- Submit a ticket (anonymous or signed in) and edit it while open
- Listing with filters and pagination, detail by id or ticket number
- Status changes, official responses, comments, ratings, assignment
- Follow / like toggles on a ticket
- Attachment upload

Endpoints:
- POST  /api/feedback                     - submit feedback
- GET   /api/feedback                     - list visible tickets
- GET   /api/feedback/{ref}               - one ticket (id or CT-XXXXXX)
- PATCH /api/feedback/{id}                - author edits an open ticket
- POST  /api/feedback/{id}/status         - change status
- POST  /api/feedback/{id}/responses      - official response
- POST  /api/feedback/{id}/comments       - comment
- POST  /api/feedback/{id}/follow         - follow / unfollow
- POST  /api/feedback/{id}/like           - like / unlike
- POST  /api/feedback/{id}/rating         - rate a resolved ticket
- POST  /api/feedback/{id}/assign         - assign staff / agency
- POST  /api/feedback/attachments         - upload attachment files

Errors are raised as `CitizenError` and rendered by the app-level handler.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_db
from ..config.settings import DEFAULT_PAGE_SIZE, MAX_ATTACHMENTS, MAX_ATTACHMENT_BYTES
from ..core.errors import ValidationFailed
from ..models.feedback import LikeSubject
from ..models.feedback_schema import (
    FeedbackCreate, FeedbackUpdate, StatusChangeRequest, ResponseCreate, CommentCreate,
    RatingRequest, FollowRequest, LikeRequest, AssignRequest,
)
from ..models.response_schema import ApiResponse
from ..models.user import User
from ..services.access_policy import Actor, Capability, authorize
from ..services.auth_service import get_actor, get_actor_optional, get_current_user_optional
from ..services.engagement_service import engagement_service
from ..services.feedback_service import feedback_service
from ..utils.file_utils import is_allowed_content_type, save_upload_file
from ..utils.logger import log

router = APIRouter(prefix="/api/feedback", tags=["feedback"])


def _dump(model) -> dict:
    return model.model_dump(by_alias=True, mode="json")


@router.post("", response_model=ApiResponse)
async def create_feedback(
    req: FeedbackCreate,
    current_user: Optional[User] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    """
    Submit feedback

    Body:
    - title, description, type (Complaint / Positive / Suggestion), category
    - subcategory, location, attachments (optional)
    - isAnonymous: anonymous tickets may be submitted without logging in

    Returns:
    - the created ticket, status `open`
    """
    ticket = await feedback_service.create_ticket(db, req, current_user)
    actor = Actor.from_user(current_user) if current_user else None
    data = await feedback_service.serialize_ticket(db, ticket, actor)
    return ApiResponse.ok(data, message="Your feedback has been received")


@router.get("", response_model=ApiResponse)
async def list_feedback(
    category: Optional[str] = None,
    status: Optional[str] = None,
    type: Optional[str] = None,
    is_anonymous: Optional[bool] = Query(default=None, alias="isAnonymous"),
    mine: bool = False,
    followed: bool = False,
    liked: bool = False,
    assigned_to_me: bool = Query(default=False, alias="assignedToMe"),
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
    actor: Optional[Actor] = Depends(get_actor_optional),
    db: AsyncSession = Depends(get_db),
):
    """
    List tickets visible to the caller, newest first

    Query:
    - category, status, type, isAnonymous: filters
    - mine: only the caller's own tickets
    - followed: only tickets the caller follows
    - liked: only tickets the caller liked
    - assignedToMe: only tickets assigned to the caller
    - limit / offset: pagination

    Returns:
    - items, total, limit, offset
    """
    tickets, total = await feedback_service.list_tickets(
        db,
        actor,
        category=category,
        status=status,
        feedback_type=type,
        is_anonymous=is_anonymous,
        owner_only=mine,
        followed=followed,
        liked=liked,
        assigned_to_me=assigned_to_me,
        limit=limit,
        offset=offset,
    )
    items = await feedback_service.serialize_tickets(db, tickets, actor)
    return ApiResponse.ok({
        "items": items,
        "total": total,
        "limit": limit,
        "offset": offset,
    })


@router.post("/attachments", response_model=ApiResponse)
async def upload_attachments(
    files: List[UploadFile] = File(...),
    actor: Optional[Actor] = Depends(get_actor_optional),
):
    """
    Upload attachment files

    Returns relative paths to pass as `attachments` when creating a ticket or
    a response. Guests may upload since anonymous tickets need no login.
    """
    if len(files) > MAX_ATTACHMENTS:
        raise ValidationFailed(f"At most {MAX_ATTACHMENTS} attachments are allowed")

    paths = []
    for upload in files:
        if not is_allowed_content_type(upload.content_type):
            raise ValidationFailed(f"Unsupported attachment type: {upload.content_type}")
        content = await upload.read()
        if len(content) > MAX_ATTACHMENT_BYTES:
            raise ValidationFailed(f"{upload.filename} exceeds {MAX_ATTACHMENT_BYTES} bytes")
        _, relative_path = await save_upload_file(upload, content)
        paths.append(relative_path)

    log.info(f"Stored {len(paths)} attachment(s) for {'user ' + str(actor.id) if actor else 'guest'}")
    return ApiResponse.ok({"attachments": paths})


@router.get("/{ref}", response_model=ApiResponse)
async def get_feedback(
    ref: str,
    actor: Optional[Actor] = Depends(get_actor_optional),
    db: AsyncSession = Depends(get_db),
):
    """
    One ticket by numeric id or ticket number

    Private tickets are visible to the owner and to staff/admin covering the
    category. Each successful read counts as a view.
    """
    ticket = await feedback_service.get_by_ref(db, ref)
    authorize(actor, Capability.VIEW, ticket)
    ticket = await feedback_service.record_view(db, ticket)
    return ApiResponse.ok(await feedback_service.serialize_ticket(db, ticket, actor))


@router.patch("/{feedback_id}", response_model=ApiResponse)
async def update_feedback(
    feedback_id: int,
    req: FeedbackUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Edit a ticket

    Body (all optional):
    - title, description, subcategory, isPublic, location, attachments
    - expectedVersion: optional optimistic lock

    Only the author or an admin, and only until the ticket is closed.
    """
    ticket = await feedback_service.update_ticket(db, feedback_id, actor, req)
    return ApiResponse.ok(await feedback_service.serialize_ticket(db, ticket, actor))


@router.post("/{feedback_id}/status", response_model=ApiResponse)
async def change_status(
    feedback_id: int,
    req: StatusChangeRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Move a ticket along its lifecycle

    Body:
    - status: open / in-progress / resolved / closed
    - note: required, recorded in the status history
    - expectedVersion: optional optimistic lock
    """
    ticket = await feedback_service.change_status(
        db, feedback_id, actor, req.status, req.note, expected_version=req.expected_version
    )
    return ApiResponse.ok(await feedback_service.serialize_ticket(db, ticket, actor))


@router.post("/{feedback_id}/responses", response_model=ApiResponse)
async def add_response(
    feedback_id: int,
    req: ResponseCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Official response by staff/admin; `statusUpdate` also moves the ticket"""
    response = await feedback_service.add_response(
        db,
        feedback_id,
        actor,
        req.message,
        status_update=req.status_update,
        note=req.note,
        attachments=req.attachments,
        expected_version=req.expected_version,
    )
    return ApiResponse.ok(_dump(feedback_service.response_out(response)))


@router.post("/{feedback_id}/comments", response_model=ApiResponse)
async def add_comment(
    feedback_id: int,
    req: CommentCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Comment on a ticket that is not closed"""
    comment = await feedback_service.add_comment(db, feedback_id, actor, req.message, parent_id=req.parent_id)
    return ApiResponse.ok(_dump(feedback_service.comment_out(comment)))


@router.post("/{feedback_id}/follow", response_model=ApiResponse)
async def follow_feedback(
    feedback_id: int,
    req: Optional[FollowRequest] = None,
    actor: Optional[Actor] = Depends(get_actor_optional),
    db: AsyncSession = Depends(get_db),
):
    """Follow (`follow: true`), unfollow (`false`) or toggle (omitted)"""
    state = await engagement_service.toggle_follow(db, feedback_id, actor, follow=req.follow if req else None)
    return ApiResponse.ok(_dump(state))


@router.post("/{feedback_id}/like", response_model=ApiResponse)
async def like_feedback(
    feedback_id: int,
    req: Optional[LikeRequest] = None,
    actor: Optional[Actor] = Depends(get_actor_optional),
    db: AsyncSession = Depends(get_db),
):
    """Like (`like: true`), unlike (`false`) or toggle (omitted)"""
    state = await engagement_service.toggle_like(db, LikeSubject.FEEDBACK, feedback_id, actor, like=req.like if req else None)
    return ApiResponse.ok(_dump(state))


@router.post("/{feedback_id}/rating", response_model=ApiResponse)
async def rate_feedback(
    feedback_id: int,
    req: RatingRequest,
    actor: Optional[Actor] = Depends(get_actor_optional),
    db: AsyncSession = Depends(get_db),
):
    """The author rates a resolved or closed ticket, 1 to 5"""
    ticket = await feedback_service.rate(db, feedback_id, actor, req.value)
    return ApiResponse.ok(await feedback_service.serialize_ticket(db, ticket, actor))


@router.post("/{feedback_id}/assign", response_model=ApiResponse)
async def assign_feedback(
    feedback_id: int,
    req: AssignRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Assign a handler (staff/admin covering the category) and/or an agency"""
    ticket = await feedback_service.assign(db, feedback_id, actor, req.assigned_to, req.assigned_agency)
    return ApiResponse.ok(await feedback_service.serialize_ticket(db, ticket, actor))
