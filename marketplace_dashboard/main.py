"""
FastAPI Production Application

Main entry point for the Marketplace Dashboard API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
import structlog

from marketplace_dashboard.config.logging import configure_logging
from marketplace_dashboard.database.connection import init_database, close_database
from marketplace_dashboard.serving.cache import init_redis, close_redis
from marketplace_dashboard.serving.api.main import create_api_app

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database engine and Redis pool for the app's lifetime."""
    configure_logging()

    logger.info("Starting Marketplace Dashboard API")

    await init_database()
    await init_redis()

    yield

    logger.info("Shutting down...")
    await close_database()
    await close_redis()


app = create_api_app(lifespan=lifespan)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
