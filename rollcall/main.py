"""Rollcall check-in service."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from rollcall.core.config import settings
from rollcall.core.database import create_db_and_tables
from rollcall.routes import attendance, display, moderation
from rollcall.routes.responses import error_response, refusal
from rollcall.verification.errors import CheckinError, Reason

# Configure logging
settings.log_dir.mkdir(parents=True, exist_ok=True)
log_file = settings.log_dir / "latest.log"

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    filename=str(log_file),
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    logger.info("Starting Rollcall check-in service")
    create_db_and_tables()
    yield
    logger.info("Rollcall check-in service shut down")


app = FastAPI(
    title=settings.app_name,
    description="Live event check-in with rotating QR tokens, geofencing and moderation links",
    version="0.1.0",
    lifespan=lifespan,
)

# Attendee devices and moderators call in from anywhere
origins = (
    ["*"]
    if settings.allowed_origins == "*"
    else [o.strip() for o in settings.allowed_origins.split(",")]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(attendance.router)
app.include_router(moderation.router)
app.include_router(display.router)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies get the endpoint's envelope with invalid_request."""
    logger.debug(f"Invalid request to {request.url.path}: {exc.errors()}")
    return refusal(request.url.path, Reason.invalid_request)


@app.exception_handler(CheckinError)
async def checkin_error_handler(request: Request, exc: CheckinError):
    return error_response(request.url.path, exc)


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    """Unexpected storage failures become server_error, never a traceback."""
    logger.exception(f"Storage error on {request.url.path}")
    return refusal(request.url.path, Reason.server_error)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}")
    return refusal(request.url.path, Reason.server_error)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.app_name}
