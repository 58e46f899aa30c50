"""
Email Platform Admin API - FastAPI application factory
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from email_platform import __version__
from email_platform.api import api_router
from email_platform.core.config import Settings, get_settings
from email_platform.core.database import Database
from email_platform.core.exceptions import AppException
from email_platform.core.middleware import (
    JSONBodyGuardMiddleware,
    RequestContextMiddleware,
    SecurityHeadersMiddleware,
    create_limiter,
    rate_limit_exceeded_handler,
)

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "API endpoint not found"

# Registered for every method so unmatched API calls get 404, not 405.
SPA_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan events for startup and shutdown
    """
    settings: Settings = app.state.settings
    database: Database = app.state.database

    # Startup
    logger.info(f"Starting {settings.PROJECT_NAME} ({settings.NODE_ENV})")

    if not await database.ping():
        logger.error("Failed to connect to database")
        await database.disconnect()
        raise RuntimeError("Database is unreachable")
    logger.info("Database connected successfully")

    if settings.DB_CREATE_TABLES:
        await database.create_all()

    yield

    # Shutdown
    logger.info("Shutting down gracefully")
    await database.disconnect()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    """All errors leave the API as ``{"error": message}``."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = []
        for error in exc.errors():
            field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            details.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
        return _error(status.HTTP_400_BAD_REQUEST, "; ".join(details) or "Invalid request")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return _error(exc.status_code, NOT_FOUND_MESSAGE)
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled error: {request.method} {request.url} "
            f"IP: {request.client.host if request.client else 'unknown'} "
            f"User-Agent: {request.headers.get('user-agent', 'unknown')}",
            exc_info=exc,
        )
        is_production = request.app.state.settings.is_production
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error" if is_production else str(exc),
        )

    # SlowAPIMiddleware invokes this handler synchronously.
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


def mount_frontend(app: FastAPI, static_dir: Path) -> None:
    """
    Serve the built single-page app: existing files as-is, every other
    non-API path falls back to index.html.
    """
    root = static_dir.resolve()
    index = root / "index.html"

    @app.api_route("/{full_path:path}", methods=SPA_METHODS, include_in_schema=False)
    async def spa_fallback(request: Request, full_path: str):
        if request.method != "GET" or full_path == "api" or full_path.startswith("api/"):
            return _error(status.HTTP_404_NOT_FOUND, NOT_FOUND_MESSAGE)

        candidate = (root / full_path).resolve()
        if full_path and candidate.is_file() and root in candidate.parents:
            return FileResponse(candidate)
        if index.is_file():
            return FileResponse(index)
        return _error(status.HTTP_404_NOT_FOUND, NOT_FOUND_MESSAGE)

    logger.info(f"Serving frontend from {root}")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application. Shared services (database pool, rate limiter)
    live on ``app.state`` and are reached through dependencies.
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Multi-tenant email marketing administration API",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = Database.from_settings(settings)
    app.state.limiter = create_limiter(settings)

    # Added innermost first: the last middleware added runs first.
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(JSONBodyGuardMiddleware, max_body_bytes=settings.max_body_bytes)
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware, is_production=settings.is_production)

    register_exception_handlers(app)

    app.include_router(api_router, prefix="/api")

    static_dir = Path(settings.STATIC_DIR)
    if settings.is_production and static_dir.is_dir():
        mount_frontend(app, static_dir)

    return app
