"""Application composition root -- wires all layers into a runnable FastAPI app.

- Reads configuration from environment variables (Settings.from_env)
- Instantiates the storage adapter (filesystem or S3/MinIO)
- Builds placement and the file share service
- Starts the in-process sweeper when SWEEP_MODE=inline

Entry point: uvicorn tempshare.main:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from tempshare.config import Settings
from tempshare.gateway.app import create_app
from tempshare.infra.scheduler import PeriodicSweeper
from tempshare.infra.storage import build_storage
from tempshare.placement.objects import ObjectPlacement
from tempshare.placement.service import FileShareService

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)


def build_app(settings: Settings | None = None) -> FastAPI:
    """Build the application: instantiate adapters, wire dependencies, mount routers.

    This function is the single composition root. All DI wiring happens here.
    """
    settings = settings or Settings.from_env()
    logging.basicConfig(level=settings.log_level)

    # -- Infrastructure layer --
    storage = build_storage(settings)

    # -- Placement + service --
    placement = ObjectPlacement(
        storage,
        buffer_size=settings.write_buffer_bytes,
        concurrency=settings.write_concurrency,
    )
    service = FileShareService(placement, max_parts=settings.max_parts)

    sweeper: PeriodicSweeper | None = None
    if settings.sweep_mode == "inline":
        sweeper = PeriodicSweeper(
            storage,
            interval=settings.sweep_interval_seconds,
            max_concurrency=settings.sweep_concurrency,
        )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if sweeper is not None:
            sweeper.start()
        else:
            logger.info("In-process sweep disabled (SWEEP_MODE=%s)", settings.sweep_mode)
        try:
            yield
        finally:
            if sweeper is not None:
                await sweeper.stop()

    application = create_app(
        service=service,
        cors_origins=settings.cors_origins,
        lifespan=lifespan,
    )

    # -- Store references on app.state for lifespan management --
    application.state.settings = settings
    application.state.storage = storage
    application.state.sweeper = sweeper

    logger.info(
        "tempshare app assembled: backend=%s sweep=%s, %d routes mounted",
        settings.storage_backend,
        settings.sweep_mode,
        len(application.routes),
    )

    return application


app = build_app()
