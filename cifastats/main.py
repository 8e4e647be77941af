"""CIFA Stats API - derived team statistics over the association's records."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from cifastats.config import get_settings
from cifastats.database import AsyncSessionLocal, close_db, init_db
from cifastats.routes.api import register_exception_handlers, router as api_router
from cifastats.stats.service import TeamStatsService
from cifastats.store.sql import SqlRecordStore

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting CIFA Stats API...")
    await init_db()

    # Tests may install their own service before startup
    if getattr(app.state, "stats_service", None) is None:
        app.state.stats_service = TeamStatsService(SqlRecordStore(AsyncSessionLocal), settings=settings)
        logger.info(
            f"Stats service ready (cache ttl={settings.cache_ttl}, "
            f"max_entries={settings.cache_max_entries})"
        )

    yield

    # Shutdown
    logger.info("Shutting down...")
    app.state.stats_service.invalidate_all()
    await close_db()


app = FastAPI(
    title="CIFA Stats",
    description="Team statistics, comparisons and rankings for the Cayman Islands Football Association",
    version="1.0.0",
    lifespan=lifespan,
)

register_exception_handlers(app)
app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("cifastats.main:app", host="0.0.0.0", port=8000)
