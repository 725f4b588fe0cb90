"""
Citizen Engagement API
---------------------------------
Features:
- Mounts the auth, feedback, comment, dashboard and user routers
- Renders every `CitizenError` and request validation failure as `{"code", "message", "data": {"kind"}}`
- Serves uploaded attachments under /uploads
- Creates missing tables at startup

Run:
cd backend && uvicorn app.main:app --reload
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .config.database import engine
from .config.settings import FRONTEND_ORIGINS, UPLOAD_DIR
from .core.errors import CitizenError, citizen_error_handler, request_validation_handler
from .models.base import Base
from .models import feedback as _feedback_models, user as _user_models  # noqa: F401  register tables
from .routers import auth_router, comment_router, dashboard_router, feedback_router, user_router
from .utils.logger import log

API_TITLE = "Citizen Engagement API"
API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info(f"Starting {API_TITLE} v{API_VERSION}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    log.info(f"Database ready ({', '.join(Base.metadata.tables.keys())})")
    yield
    await engine.dispose()
    log.info("Shutdown complete")


app = FastAPI(title=API_TITLE, version=API_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(CitizenError, citizen_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"code": 500, "message": "Internal server error", "data": {"kind": "InternalError"}},
    )


app.include_router(auth_router.router)
app.include_router(feedback_router.router)
app.include_router(comment_router.router)
app.include_router(dashboard_router.router)
app.include_router(user_router.router)

UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(UPLOAD_DIR)), name="uploads")


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok", "version": API_VERSION}
