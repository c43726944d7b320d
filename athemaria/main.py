"""
Athemaria - Main Application

Story-sharing backend: authors write and publish serialized fiction in
chapters; readers rate, comment, favorite and keep read-later lists; admins
moderate reported stories.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import uvicorn
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
import logging
import os
import sys
import tempfile
import traceback

from athemaria.config import Settings, get_settings
from athemaria.services import (
    AthemariaError,
    AuthError,
    AuthService,
    BlobStorageService,
    FirestoreService,
    ModerationService,
    NotFoundError,
    PermissionDeniedError,
    init_logger,
)
from athemaria.services.auth import UNAUTHORIZED_CODES
from athemaria.api import AppServices, router, admin_router, account_router

logger = logging.getLogger(__name__)


def setup_logging(settings: Settings) -> Path:
    """
    Configure logging to both file and console.

    Returns:
        Path of the log file
    """
    # Use /tmp on Azure App Service (read-only filesystem) or local logs for development
    if os.environ.get("WEBSITE_SITE_NAME"):
        log_dir = Path(tempfile.gettempdir()) / "athemaria_logs"
    else:
        log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)
    log_file = log_dir / f"athemaria_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    file_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_formatter = logging.Formatter('%(message)s')

    # File handler (detailed logs)
    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(file_formatter)

    # Console handler (user-friendly output)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    console_handler.setFormatter(console_formatter)

    logging.basicConfig(
        level=logging.DEBUG,
        handlers=[file_handler, console_handler],
        force=True
    )
    # The Google and Azure SDKs are chatty at DEBUG
    for noisy in ("urllib3", "google", "azure"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return log_file


def build_services(settings: Settings, app_logger=None) -> AppServices:
    """Create and initialize every service from settings."""
    blob_storage = None
    default_cover = settings.default_cover_url

    if settings.azure_blob_connection_string:
        logger.info("📦 Connecting to Azure Blob Storage...")
        blob_storage = BlobStorageService(
            connection_string=settings.azure_blob_connection_string,
            container_name=settings.azure_blob_container,
            default_cover_path=settings.default_cover_path,
            logger=app_logger
        )
        blob_storage.initialize()
        default_cover = blob_storage.get_default_cover_url()
        logger.info("✅ Azure Blob Storage connected")
    else:
        logger.warning("⚠️  AZURE_BLOB_CONNECTION_STRING is missing! Cover and avatar uploads are disabled.")

    logger.info("📊 Connecting to Firestore...")
    store = FirestoreService(
        project_id=settings.firebase_project_id,
        credentials_dict=settings.get_firebase_credentials_dict(),
        credentials_path=settings.google_application_credentials,
        default_cover=default_cover,
        logger=app_logger
    )
    store.initialize()
    logger.info("✅ Firestore connected")

    if not settings.firebase_api_key:
        logger.warning("⚠️  FIREBASE_API_KEY is missing! Login and password reset will not work.")
    if not settings.admin_uid:
        logger.warning("⚠️  ADMIN_UID is missing! The admin dashboard is unreachable.")

    return AppServices(
        settings=settings,
        store=store,
        auth=AuthService(api_key=settings.firebase_api_key or "", admin_uid=settings.admin_uid),
        moderation=ModerationService(store, logger=app_logger),
        blob_storage=blob_storage,
        logger=app_logger,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifecycle management for the application.

    Initializes services on startup, cleans up on shutdown. Services already
    placed on `app.state` (tests) are used as-is.
    """
    settings = get_settings()

    if getattr(app.state, "services", None) is None:
        log_file = setup_logging(settings)
        logger.info(f"📝 Logging to: {log_file}")
        logger.info("📚 Initializing Athemaria...")

        app_logger = init_logger(debug_mode=settings.debug, settings=settings)
        if settings.debug_storage:
            logger.info(f"🐛 Storage debug logging enabled: {settings.debug_log_dir}/")

        app.state.services = build_services(settings, app_logger)
        logger.info(f"📚 Athemaria ready on port {settings.port}!")
        logger.info(f"📚 API Documentation: http://localhost:{settings.port}/docs")

    yield

    # Shutdown
    logger.info("👋 Shutting down Athemaria...")
    app.state.services.shutdown()


def _error_status(exc: AthemariaError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, PermissionDeniedError):
        return 403
    if isinstance(exc, AuthError):
        return 401 if exc.code in UNAUTHORIZED_CODES else 400
    return 500


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="""
        Story-sharing platform API.

        Features:
        - Chaptered stories with drafts, publishing and soft delete
        - Comments, ratings, favorites and read-later lists
        - Reading progress and popular stories
        - Reports, moderation actions and notifications
        """,
        version="1.0.0",
        lifespan=lifespan
    )

    # CORS middleware
    # For production: CORS_ALLOWED_ORIGINS=https://athemaria.app,https://www.athemaria.app
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Validation error handler - log details for debugging
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        error_details = []
        for error in errors:
            input_val = error.get('input', 'N/A')
            # Truncate long inputs (chapter content, base64 uploads)
            if isinstance(input_val, str) and len(input_val) > 100:
                input_val = input_val[:100] + "..."
            error_details.append(f"{error['loc']}: {error['msg']} (input: {input_val})")

        logger.error(f"❌ Validation Error on {request.url.path}: " + " | ".join(error_details))

        return JSONResponse(
            status_code=422,
            content={"detail": [
                {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
                for error in errors
            ]}
        )

    @app.exception_handler(AthemariaError)
    async def service_exception_handler(request: Request, exc: AthemariaError):
        status_code = _error_status(exc)
        if status_code == 500:
            # StorageError messages are generic; the SDK error is in the chained cause
            logger.error(f"❌ {type(exc).__name__} on {request.url.path}: {exc} (cause: {exc.__cause__!r})")
        else:
            logger.info(f"{type(exc).__name__} on {request.url.path}: {exc}")

        content = {"detail": str(exc)}
        if isinstance(exc, AuthError) and exc.code:
            content["code"] = exc.code
        return JSONResponse(status_code=status_code, content=content)

    # Global exception handler - catch unhandled exceptions to prevent crashes
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch all unhandled exceptions to prevent server crashes.
        Logs the error and returns a friendly error message.
        """
        error_id = datetime.now().strftime('%Y%m%d_%H%M%S_%f')

        logger.error(f"❌ UNHANDLED EXCEPTION [{error_id}]")
        logger.error(f"   Path: {request.url.path}")
        logger.error(f"   Method: {request.method}")
        logger.error(f"   Error: {type(exc).__name__}: {exc}")
        logger.error(f"   Traceback:\n{''.join(traceback.format_exception(exc))}")

        # Never expose exception details to clients; error_id finds them in the logs
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "error_id": error_id,
                "message": "An unexpected error occurred. Please try again."
            }
        )

    app.include_router(router)
    app.include_router(admin_router)
    app.include_router(account_router)

    @app.get("/")
    async def root():
        return {
            "message": f"Welcome to {settings.app_name}!",
            "docs": "/docs",
            "health": "/api/health",
            "version": "1.0.0"
        }

    return app


app = create_app()


def main():
    """Run the application"""
    settings = get_settings()

    uvicorn.run(
        "athemaria.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    main()
