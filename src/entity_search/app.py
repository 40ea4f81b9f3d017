"""FastAPI application factory and lifespan management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from entity_search.config import Settings
from entity_search.middleware.logging import RequestLoggingMiddleware
from entity_search.routes import health, indexes, search
from entity_search.search import SearchClient

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle events.

    The search client is initialized by the host before the app is built.
    On shutdown, background reindexing is stopped and indexes are closed.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings: Settings = app.state.settings
    client: SearchClient = app.state.search_client
    logger.info(
        "api_startup",
        search_path=str(settings.search_path),
        indexes=sorted(client.indexes()),
    )

    try:
        yield
    finally:
        client.close()
        logger.info("api_shutdown")


def create_app(client: SearchClient, settings: Settings | None = None) -> FastAPI:
    """Factory function to create a configured FastAPI application.

    Args:
        client: Initialized search client serving the routes.
        settings: Configuration instance. Creates default if None.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="Entity Search API",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/api/v1/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/api/v1/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.search_client = client

    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(search.router, prefix="/api/v1")
    app.include_router(indexes.router, prefix="/api/v1")

    return app
