"""
Price Sync - Main Application
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from . import __version__
from .config import settings
from .dependencies import init_dependencies, close_dependencies, get_scheduler
from .routes import ALL_ROUTERS

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("Starting Price Sync...")
    await init_dependencies()

    if settings.scheduler_enabled:
        await get_scheduler().start()
    else:
        logger.info("Scheduler disabled; syncs run only when triggered")

    logger.info("Application ready")
    yield
    logger.info("Shutting down...")
    await close_dependencies()


# Create app
app = FastAPI(
    title="Price Sync",
    description="Keep WooCommerce and Shopify prices aligned with StreetPricer",
    version=__version__,
    lifespan=lifespan
)

for router in ALL_ROUTERS:
    app.include_router(router)


@app.get("/health")
async def health():
    """Health check endpoint (no auth required)."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "price_sync.main:app",
        host=settings.host,
        port=settings.port,
    )
