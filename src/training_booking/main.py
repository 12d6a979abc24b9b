"""Application wiring: settings -> store -> booking engine -> FastAPI app."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI

from training_booking import __version__
from training_booking.api.app import create_app
from training_booking.booking.engine import BookingEngine
from training_booking.core.clock import IClock
from training_booking.core.config import Settings, load_settings
from training_booking.core.enums import StoreBackend
from training_booking.core.errors import ConfigError
from training_booking.core.interfaces import IRecordStore
from training_booking.observability.logger import setup_logging
from training_booking.observability.metrics import start_metrics_server
from training_booking.seed import seed_demo_data
from training_booking.storage.memory_store import InMemoryRecordStore

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> IRecordStore:
    """Create the record store selected by ``settings.store_backend``."""
    settings.validate_store()

    if settings.store_backend == StoreBackend.MEMORY:
        logger.info("Using in-memory record store")
        return InMemoryRecordStore()

    if settings.store_backend == StoreBackend.POSTGRES:
        from training_booking.storage.postgres.repos import SqlRecordStore

        return SqlRecordStore.from_config(settings.database)

    raise ConfigError(f"Unsupported store backend: {settings.store_backend}")


async def prepare_store(
    store: IRecordStore,
    settings: Settings,
    clock: IClock | None = None,
) -> None:
    """Create tables and seed demo data as configured."""
    if settings.store_backend == StoreBackend.POSTGRES and settings.database.create_tables:
        from training_booking.storage.postgres.connection import create_all
        from training_booking.storage.postgres.repos import SqlRecordStore

        assert isinstance(store, SqlRecordStore)
        await create_all(store.engine)

    if settings.seed_demo_data:
        await seed_demo_data(store, clock)


def build_app(settings: Settings, clock: IClock | None = None) -> FastAPI:
    """Build the full application from settings.

    The store is prepared on startup and closed on shutdown.
    """
    store = build_store(settings)
    engine = BookingEngine.from_config(store, settings.booking, clock=clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await prepare_store(store, settings, clock)
        logger.info("Booking service started (backend=%s)", settings.store_backend.value)
        try:
            yield
        finally:
            await store.close()
            logger.info("Booking service stopped")

    return create_app(engine, title=settings.api.title, lifespan=lifespan)


def run_server(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> None:
    """Load settings, configure logging/metrics and serve the API."""
    import uvicorn

    settings = load_settings(config_path, overrides)
    setup_logging(
        level=settings.observability.log_level,
        format=settings.observability.log_format,
    )
    if settings.observability.metrics_enabled:
        start_metrics_server(settings.observability.metrics_port, version=__version__)

    app = build_app(settings)
    uvicorn.run(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_config=None,
    )
