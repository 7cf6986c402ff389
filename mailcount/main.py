"""
FastAPI application entrypoint for the mail sender counter.
"""

from __future__ import annotations

from fastapi import FastAPI

from mailcount import __version__
from mailcount.api.errors import register_exception_handlers
from mailcount.api.routes import router as api_router
from mailcount.core.config import get_settings
from mailcount.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.gmail.application_name,
        version=__version__,
        description="Counts Gmail messages per sender using a locally stored OAuth token.",
    )
    app.include_router(api_router, prefix="/api")
    register_exception_handlers(app)
    return app


app = create_app()

__all__ = ["app", "create_app"]
