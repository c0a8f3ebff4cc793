from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from media_search.core.config import settings
from media_search.core.database import engine, Base
from media_search.core.errors import AppError, AuthError, ValidationError
from media_search.core.logging import setup_logging
from media_search.core.scheduler import start_scheduler, stop_scheduler
from media_search.api.routes import auth, media
from media_search.services.openverse_service import openverse_service
# Imported so their tables are registered on Base.metadata
from media_search.models import search, user  # noqa: F401
import logging

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage app lifecycle events.

    Startup: create missing tables, start the history prune scheduler
    Shutdown: stop the scheduler, close the Openverse HTTP client
    """
    # In production, use migrations (Alembic) instead of create_all
    Base.metadata.create_all(bind=engine)
    start_scheduler()
    logger.info("Media Search API started")
    yield
    stop_scheduler()
    await openverse_service.aclose()
    logger.info("Media Search API stopped")


app = FastAPI(
    title="Media Search API",
    description="Search openly-licensed images and audio from Openverse",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware - allows the frontend origin to call the API with credentials
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Render domain errors as JSON with the status carried on the exception"""
    if exc.status_code >= 500:
        # Details were logged where the error was raised; the client gets the generic message
        logger.error(f"{request.method} {request.url.path} failed: {type(exc).__name__}")
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report request validation as 400 with field-level errors instead of FastAPI's 422"""
    errors = []
    for error in exc.errors():
        # loc is e.g. ("query", "q") or ("body", "email"); drop the location prefix
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc) or "request", "message": error.get("msg", "Invalid value")})
    logger.warning(f"Validation failed on {request.method} {request.url.path}: {errors}")
    return await app_error_handler(request, ValidationError(errors))


# Register API route modules
# All routes are prefixed with /api for consistency
app.include_router(auth.router, prefix="/api")
app.include_router(media.router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint - API information"""
    return {"message": "Open Media Search API", "version": "1.0.0"}


@app.get("/health")
async def health():
    """Health check endpoint - used by monitoring/deployment tools"""
    return {"status": "healthy"}
