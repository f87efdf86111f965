"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from photo_findings.api.admin import router as admin_router
from photo_findings.app_logging import configure_logging
from photo_findings.containers import AppContainer


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        stop = asyncio.Event()
        worker_task: asyncio.Task[None] | None = None
        if state_container.settings.worker_enabled:
            worker_task = asyncio.create_task(state_container.worker.run(stop))
            logger.info("Vision worker started in API process")
        yield
        stop.set()
        if worker_task is not None:
            await worker_task
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
