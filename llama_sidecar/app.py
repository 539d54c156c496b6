"""FastAPI application factory for the sidecar."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api.context import AppContext
from .api.routers import completions, lifecycle

logger = logging.getLogger(__name__)


def create_app(context: AppContext) -> FastAPI:
    """
    Build the sidecar app around an already started child.

    The caller is responsible for spawning llama-server and waiting for it
    to become ready before serving the returned app.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            logger.info("Shutting down sidecar...")
            outcome = await context.supervisor.terminate()
            logger.info(f"Child on exit: {outcome.message}")
            await context.client.aclose()
            logger.info("Shutdown complete")

    app = FastAPI(
        title="llama-server sidecar",
        description="Supervises llama-server and proxies its completion API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.context = context

    app.include_router(lifecycle.router)
    app.include_router(completions.router)

    return app
