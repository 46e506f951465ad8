"""Courier FastAPI application entrypoint."""

from __future__ import annotations

import os
import signal
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from courier import __version__
from courier.config import CourierConfig
from courier.logging import setup_logging
from courier.runtime import create_context

logger = structlog.get_logger()


def _shutdown_process(exc: BaseException) -> None:
    logger.error("courier.fatal", error=str(exc))
    os.kill(os.getpid(), signal.SIGTERM)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application startup/shutdown lifecycle."""
    config = CourierConfig.load()
    setup_logging(level=config.log_level, fmt=config.log_format)

    logger.info("courier.starting", version=__version__, env=config.messaging.env)

    context = await create_context(config, on_fatal=_shutdown_process)
    await context.supervisor.start()

    app.state.config = config
    app.state.context = context

    logger.info("courier.ready")

    yield

    # Shutdown
    logger.info("courier.shutting_down")
    await context.aclose()
    logger.info("courier.stopped")


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title="Courier",
        version=__version__,
        description="Bridges encrypted chat conversations and a hosted AI agent.",
        lifespan=lifespan,
    )

    from courier.api.routes.health import router as health_router

    app.include_router(health_router, tags=["health"])

    return app


app = create_app()


def main() -> None:
    """Run the server directly."""
    config = CourierConfig.load()
    setup_logging(level=config.log_level, fmt=config.log_format)
    uvicorn.run(
        "courier.main:app",
        host=config.host,
        port=config.port,
        log_level="warning",
    )


if __name__ == "__main__":
    main()
