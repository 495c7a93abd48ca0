"""
Warehouse Sync - Main Application
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .dependencies import init_dependencies, close_dependencies, get_scheduler
from .routes import stores_router, logs_router, sync_router, stock_router, webhooks_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("Starting Warehouse Sync...")
    await init_dependencies()
    if settings.scheduler_enabled:
        get_scheduler().start()
    logger.info("Application ready")
    yield
    logger.info("Shutting down...")
    await close_dependencies()


# Create app
app = FastAPI(
    title="Warehouse Sync",
    description="Keeps the warehouse datastore in sync with WooCommerce stores",
    version="1.0.0",
    lifespan=lifespan
)

# Include routers
app.include_router(stores_router)
app.include_router(logs_router)
app.include_router(sync_router)
app.include_router(stock_router)
app.include_router(webhooks_router)


@app.get("/health")
async def health():
    """Health check endpoint (no auth required)."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "warehouse_sync.main:app",
        host=settings.host,
        port=settings.port,
        reload=True
    )
