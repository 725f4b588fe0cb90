"""
Backend configuration (.env loaded automatically)
---------------------------------
Features:
- Database connection URL (MySQL via aiomysql by default, any SQLAlchemy async URL accepted).
- JWT signing settings for session tokens.
- Allowed frontend origins for CORS.
- Attachment upload directory and limits.
- Pagination defaults for ticket listings.

Usage:
- Set variables in the deployment environment or in a `.env` file at the project root;
- `DATABASE_URL` overrides the individual `DB_*` variables;
- In production `JWT_SECRET_KEY` must be replaced with a strong secret.
"""

from pathlib import Path
import os
from dotenv import find_dotenv, load_dotenv


# settings.py lives in project_root/backend/app/config/
PROJECT_ROOT = Path(__file__).resolve().parents[3]
BACKEND_DIR = PROJECT_ROOT / "backend"

# Load the project .env if present. `override=False` keeps variables that are
# already set in the process environment.
_found = find_dotenv(filename=".env", usecwd=True)
if _found:
    load_dotenv(_found, override=False)
else:
    load_dotenv(str(PROJECT_ROOT / ".env"), override=False)

# --- Database ---
DB_HOST = os.getenv("DB_HOST", "127.0.0.1")
DB_PORT = os.getenv("DB_PORT", "3306")
DB_USER = os.getenv("DB_USER", "citizen")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_NAME = os.getenv("DB_NAME", "citizen_engagement")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"mysql+aiomysql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}?charset=utf8mb4",
)
# Seconds to wait for a pooled connection before failing the request
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", 10))

# --- Uploads ---
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", BACKEND_DIR / "uploads")).expanduser().resolve()
FEEDBACK_UPLOAD_DIR = UPLOAD_DIR / "feedback"
MAX_ATTACHMENTS = int(os.getenv("MAX_ATTACHMENTS", 5))
MAX_ATTACHMENT_BYTES = int(os.getenv("MAX_ATTACHMENT_BYTES", 10 * 1024 * 1024))

# --- CORS ---
_origins_csv = os.getenv("FRONTEND_ORIGINS", "").strip()
if _origins_csv:
    FRONTEND_ORIGINS = [o.strip() for o in _origins_csv.split(",") if o.strip()]
else:
    FRONTEND_ORIGINS = [
        os.getenv("FRONTEND_ORIGIN", "http://localhost:3000"),
    ]

# --- JWT / sessions ---
# The token only identifies a server-side session; role and categories are
# always re-read from the database.
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "your-secret-key-please-change-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
# Token and session lifetime in minutes, 7 days by default
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", 60 * 24 * 7))

# --- Listing ---
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", 10))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", 100))

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
