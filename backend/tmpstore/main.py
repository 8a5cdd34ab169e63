"""FastAPI application entry point."""

import asyncio
import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tmpstore.api import blobs
from tmpstore.config import StoreSettings
from tmpstore.storage import BlobStore, EvictionScheduler

# Configure logging
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)


def build_store(settings: StoreSettings) -> BlobStore:
    """Create the blob store described by the settings."""
    return BlobStore(
        settings.directory,
        max_entry_size=settings.max_entry_size,
        sweep_interval=settings.sweep_interval,
        entry_lifetime=settings.entry_lifetime,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown."""
    # Startup
    if app.state.store is None:
        app.state.store = build_store(app.state.settings)
    store: BlobStore = app.state.store

    scheduler = EvictionScheduler(store)
    app.state.scheduler = scheduler
    await scheduler.start()

    yield

    # Shutdown: no requests are accepted any more
    await scheduler.stop()
    removed = await asyncio.to_thread(store.clear)
    logger.info(f"Shutdown removed {removed} blob(s)")


def create_app(
    settings: StoreSettings | None = None,
    store: BlobStore | None = None,
) -> FastAPI:
    """Create the application.

    Args:
        settings: Service settings. Defaults to the environment.
        store: An already initialized store. When omitted, one is built from
            the settings at startup.
    """
    app = FastAPI(
        title="tmpstore",
        description="Short-lived blob storage: upload, download, delete, auto-expire",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings or StoreSettings.from_env()
    app.state.store = store
    app.state.scheduler = None

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    app.include_router(blobs.router, tags=["blobs"])

    return app


# ASGI entry point: uvicorn tmpstore.main:app
app = create_app()
