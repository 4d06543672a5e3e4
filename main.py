"""
FastAPI application wiring for the session registry.

The lifespan handler builds one SessionRegistry per application, exposes it
on app.state and runs a SessionCleaner for as long as the application is up.
Route handlers get the registry through the get_session_registry dependency.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request

from config.settings import Settings, get_settings, validate_startup
from errors.handlers import register_exception_handlers
from session.cleaner import SessionCleaner
from session.registry import SessionRegistry
from telemetry.service import setup_logging

logger = logging.getLogger(__name__)


def get_session_registry(request: Request) -> SessionRegistry:
    """FastAPI dependency returning the application's registry."""
    return request.app.state.session_registry


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use. Loaded from the environment if not given.

    Returns:
        The configured FastAPI application.

    Raises:
        ConfigurationError: If the settings fail startup validation.
    """
    settings = settings or get_settings()
    validate_startup(settings)
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        registry = SessionRegistry(settings.registry_config())
        cleaner = SessionCleaner(registry)
        app.state.session_registry = registry
        app.state.session_cleaner = cleaner

        logger.info("Starting session registry", extra={"extra_data": {
            "environment": settings.environment.value,
            "max_lifetime_seconds": registry.config.max_lifetime.total_seconds(),
        }})
        await cleaner.start()

        yield

        await cleaner.stop()
        logger.info("Session registry shut down", extra={"extra_data": {
            "sessions_dropped": registry.count(),
        }})

    app = FastAPI(title="Session Registry", version="1.0.0", lifespan=lifespan)
    register_exception_handlers(app)

    @app.get("/health")
    async def health(request: Request):
        registry = get_session_registry(request)
        return {
            "status": "healthy",
            "sessions": registry.count(),
            "cleaner_running": request.app.state.session_cleaner.running,
        }

    return app
