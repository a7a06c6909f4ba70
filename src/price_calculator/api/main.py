"""
Price Calculator API - FastAPI application.

Run with `python scripts/run_api.py` or `uvicorn price_calculator.api.main:app`.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config.settings import Settings, get_settings, configure_logging
from ..errors import (
    ValidationFailed, RecordNotFound, PersistenceError, BackupFormatError,
    AssistantError, RateLimited, CreditsExhausted,
)
from ..services.store import TableStore
from . import assistant_api, backup_api, calculator_api, catalog_api, export_api, history_api
from .state import AppState, build_state, get_state

logger = logging.getLogger(__name__)


def _error(status_code: int, detail: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, **extra})


def register_error_handlers(app: FastAPI):
    @app.exception_handler(ValidationFailed)
    async def validation_failed(request: Request, exc: ValidationFailed):
        return _error(422, str(exc), errors=exc.errors)

    @app.exception_handler(RecordNotFound)
    async def not_found(request: Request, exc: RecordNotFound):
        return _error(404, str(exc))

    @app.exception_handler(PersistenceError)
    async def persistence_error(request: Request, exc: PersistenceError):
        logger.error("Persistence error on %s %s: %s", request.method, request.url.path, exc)
        return _error(503, str(exc))

    @app.exception_handler(BackupFormatError)
    async def backup_format_error(request: Request, exc: BackupFormatError):
        return _error(400, str(exc))

    @app.exception_handler(AssistantError)
    async def assistant_error(request: Request, exc: AssistantError):
        logger.warning("Assistant error: %s", exc)
        status = exc.status_code if isinstance(exc, (RateLimited, CreditsExhausted)) else 502
        return _error(status, str(exc))


def create_app(settings: Optional[Settings] = None, store: Optional[TableStore] = None) -> FastAPI:
    """Build the app; settings and store are resolved at startup unless given."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        resolved = settings or get_settings()
        configure_logging(resolved.log_level)
        state = build_state(resolved, store)
        app.state.services = state

        try:
            state.catalog.ensure_default_regions()
        except (PersistenceError, OSError) as e:
            logger.warning("Default region seed failed: %s", e)
        await state.backups.start()
        state.status.start()
        logger.info("Price calculator API started (store=%s)", resolved.store_backend)
        try:
            yield
        finally:
            await state.status.stop()
            await state.backups.stop()
            logger.info("Price calculator API stopped")

    app = FastAPI(
        title="Sales Price Calculator API",
        description="Backend API for the furniture sale price calculator",
        version=__version__,
        lifespan=lifespan,
    )

    # Enable CORS for frontend development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(calculator_api.router)
    app.include_router(catalog_api.router)
    app.include_router(history_api.router)
    app.include_router(export_api.router)
    app.include_router(backup_api.router)
    app.include_router(assistant_api.router)

    @app.get("/")
    async def root():
        return {"status": "online", "message": "Price Calculator API Active"}

    @app.get("/system/status")
    async def get_status(state: AppState = Depends(get_state)):
        return {
            "engine_active": True,
            "store_backend": state.settings.store_backend,
            "backup_status": state.status.status,
            "last_backup_at": state.backups.last_backup_at,
            "assistant_configured": state.assistant is not None,
        }

    return app


app = create_app()
