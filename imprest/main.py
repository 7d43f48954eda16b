from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from imprest.api.health import router as health_router
from imprest.api.router import api_router
from imprest.config import get_settings
from imprest.db import dispose_engine
from imprest.exceptions import setup_exception_handlers
from imprest.middleware import setup_middleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Open nothing eagerly; release the database pool on shutdown."""
    settings = get_settings()
    logger.info(
        "Starting %s v%s [%s], accounting window %dh",
        settings.app_name,
        settings.app_version,
        settings.environment,
        settings.accounting_window_hours,
    )
    yield
    await dispose_engine()
    logger.info("Shut down %s", settings.app_name)


def create_app() -> FastAPI:
    """Build the imprest API application."""
    settings = get_settings()

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    setup_middleware(application, settings)
    setup_exception_handlers(application)

    application.include_router(health_router)
    application.include_router(api_router)

    return application


app = create_app()
