"""FastAPI application entry point."""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from uuid import uuid4

# Configure logging to output to stdout
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_settings
from app.database.session import SessionLocal
from app.routers import analyses, auth, health, usage
from app.services.core.usage_reset import run_usage_reset_loop

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the usage reset loop on startup and stop it on shutdown."""
    reset_task = asyncio.create_task(run_usage_reset_loop(SessionLocal))
    logger.info("Usage reset loop launched")

    yield

    reset_task.cancel()
    try:
        await reset_task
    except asyncio.CancelledError:
        logger.info("Usage reset loop stopped")


app = FastAPI(
    title="Video Insights API",
    description="AI-generated summaries, insights and action steps for YouTube videos",
    version="0.1.0",
    redirect_slashes=False,
    lifespan=lifespan,
)

# CORS for frontend
origins = [
    "http://localhost:3000",
    "http://localhost:5173",
]

# Add production frontend URL if configured (handle www and non-www)
if settings.frontend_url:
    origins.append(settings.frontend_url)
    if "://www." in settings.frontend_url:
        origins.append(settings.frontend_url.replace("://www.", "://"))
    elif "://" in settings.frontend_url:
        origins.append(settings.frontend_url.replace("://", "://www."))

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Retry-After"],
)

# Include routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(usage.router)
app.include_router(analyses.router)


def _error_type(status_code: int) -> str:
    if status_code == 429:
        return "rate_limit"
    if status_code == 404:
        return "not_found"
    if status_code in (400, 422):
        return "validation"
    if status_code in (401, 403):
        return "auth"
    if status_code == 503:
        return "unavailable"
    return "server_error"


# Global exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with consistent format."""
    error_id = str(uuid4())

    # Rate limit details arrive as a dict already
    if isinstance(exc.detail, dict):
        content = {**exc.detail, "error_id": error_id}
    else:
        content = {
            "detail": str(exc.detail),
            "error_type": _error_type(exc.status_code),
            "error_id": error_id,
        }

    logger.warning(
        f"HTTP {exc.status_code} [{error_id}]: {exc.detail} - {request.method} {request.url.path}"
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors with field details."""
    error_id = str(uuid4())

    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({"field": field, "message": error["msg"]})

    logger.warning(
        f"Validation error [{error_id}]: {errors} - {request.method} {request.url.path}"
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Validation error",
            "error_type": "validation",
            "error_id": error_id,
            "errors": errors,
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unhandled exceptions."""
    error_id = str(uuid4())

    logger.error(
        f"Unhandled exception [{error_id}]: {type(exc).__name__}: {exc} - "
        f"{request.method} {request.url.path}",
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "error_type": "server_error",
            "error_id": error_id,
        },
    )
