"""EduTrack - FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from edutrack.config import settings
from edutrack.database import init_db
from edutrack.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    EduTrackError,
    NotFoundError,
    ValidationError,
)
from edutrack.middleware import AuthMiddleware
from edutrack.routers import assignments, classes, media, practice, reports, users
from edutrack.services.storage import get_upload_storage

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    # Create data and upload directories if needed
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    get_upload_storage().ensure_dirs()
    # Initialize database tables
    await init_db()
    logger.info("EduTrack started (debug=%s)", settings.APP_DEBUG)
    yield


app = FastAPI(title="EduTrack", version="0.1.0", lifespan=lifespan)


@app.exception_handler(EduTrackError)
async def edutrack_exception_handler(request: Request, exc: EduTrackError):
    """Map domain exceptions to HTTP status codes."""
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    logger.warning(
        "Application exception on %s %s: %s: %s",
        request.method, request.url.path, type(exc).__name__, exc,
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# Middleware
app.add_middleware(AuthMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Uploaded files
settings.UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(settings.UPLOAD_DIR)), name="uploads")

# Routers
app.include_router(users.router)
app.include_router(classes.router)
app.include_router(media.router)
app.include_router(assignments.router)
app.include_router(practice.router)
app.include_router(reports.router)


@app.get("/api/health")
async def health():
    return {"status": "OK", "message": "EduTrack API is running"}
