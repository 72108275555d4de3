from __future__ import annotations

import json

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .config import get_settings
from .errors import AuthorizationDenied, ReminderEngineError, StoreWriteFailed, TaskNotFound, TaskValidationError
from .logging_config import configure_logging, get_logger
from .routes import api_router
from .utils.responses import error_response

logger = get_logger(__name__)

_ERROR_STATUS = [
    (TaskValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (TaskNotFound, status.HTTP_404_NOT_FOUND),
    (AuthorizationDenied, status.HTTP_403_FORBIDDEN),
    (StoreWriteFailed, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_for(exc: ReminderEngineError) -> int:
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


# Register global exception handlers for consistent error responses across the API
def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ReminderEngineError)
    async def _engine_exception_handler(request: Request, exc: ReminderEngineError):
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        return error_response(exc.message, status_for(exc))

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.debug("validation error", extra={"errors": exc.errors(), "path": str(request.url)})
        return JSONResponse(
            {"ok": False, "error": "Invalid request", "detail": json.loads(json.dumps(exc.errors(), default=str))},
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    @app.exception_handler(ValidationError)
    async def _model_validation_handler(request: Request, exc: ValidationError):
        errors = exc.errors()
        message = errors[0]["msg"] if errors else "Task settings are invalid"
        return error_response(message, status.HTTP_422_UNPROCESSABLE_ENTITY)

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        if not isinstance(detail, str):
            detail = json.dumps(detail)
        return error_response(detail, exc.status_code)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", extra={"path": str(request.url)})
        return error_response("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)


def create_app() -> FastAPI:
    """Build the hook API application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=settings.resolved_docs_url,
        redoc_url=None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.on_event("startup")
    # Verify storage, refresh once, and start the background wake loop
    async def _start_services() -> None:
        logger.info("🚀 Taskminder starting up...")

        try:
            from .services.background_services import get_background_manager
            from .services.supabase_client import get_supabase_client, verify_database_tables

            client = get_supabase_client() if settings.supabase_enabled else None
            if client is not None:
                verify_database_tables(client)

            background_manager = get_background_manager()
            await background_manager.on_foreground()
            await background_manager.start_services()

            logger.info("✅ Taskminder startup completed successfully")

        except Exception as e:
            logger.exception(f"❌ Error during startup: {e}")

    @app.on_event("shutdown")
    # Gracefully shutdown background services when the app stops
    async def _stop_services() -> None:
        logger.info("Taskminder shutting down...")

        try:
            from .services.background_services import get_background_manager

            await get_background_manager().stop_services()
            logger.info("Taskminder shutdown completed")

        except Exception as e:
            logger.error(f"Error during shutdown: {e}")

    return app


configure_logging()
app = create_app()


__all__ = ["app", "create_app"]
