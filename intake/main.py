from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError

from intake.config import load_config
from intake.db.base import get_engine
from intake.db.migrations_runner import apply_migrations
from intake.http.problem import (
    handle_http_exception,
    handle_request_validation_error,
    handle_sync_error,
    handle_unexpected_error,
)
from intake.http.request_id import RequestIdMiddleware
from intake.logging_setup import configure_logging
from intake.logic.errors import SyncError
from intake.routes import api_router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build the intake API: problem+json handlers, request ids and routes."""
    configure_logging(load_config().logging.level)
    app = FastAPI(title="Technology Intake Service")
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(SyncError, handle_sync_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.add_middleware(RequestIdMiddleware)

    # Apply migrations on startup (guarded) to avoid import-time side effects
    @app.on_event("startup")
    def _apply_migrations() -> None:
        config = load_config()
        if not config.database.auto_apply_migrations:
            logger.info("AUTO_APPLY_MIGRATIONS disabled; skipping migrations at startup")
            return
        try:
            applied = apply_migrations(get_engine(config.database.dsn), config.database.migrations_dir)
        except Exception:
            logger.error("Failed to apply migrations at startup", exc_info=True)
            raise
        logger.info("startup_migrations_applied count=%s", len(applied))

    @app.get("/health", include_in_schema=False)
    def health() -> dict:
        return {"status": "ok"}

    app.include_router(api_router, prefix="/api/v1")
    return app


__all__ = ["create_app"]
