"""
FastAPI Production Application

Main entry point for the Car-Wash Spend Analytics API.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from spend_analytics.config import get_settings
from spend_analytics.config.logging import configure_logging
from spend_analytics.database.connection import init_database, close_database
from spend_analytics.serving.api.main import create_api_app
from spend_analytics.serving.cache import create_query_cache

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()
    settings = get_settings()

    logger.info("Starting API", app=settings.app_name, environment=settings.app_env, version=settings.version)

    await init_database()

    app.state.query_cache = create_query_cache(settings)

    yield

    logger.info("Shutting down...")
    await app.state.query_cache.close()
    await close_database()


app = create_api_app(lifespan=lifespan)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
