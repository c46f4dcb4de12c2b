"""FastAPI application serving futures series over HTTP and WebSocket."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.futures import FuturesSettings, create_api_router, create_futures_services, create_stream_router
from app.futures.interface import FuturesDataSource

logger = logging.getLogger(__name__)


def create_app(
    settings: FuturesSettings | None = None,
    source: FuturesDataSource | None = None,
) -> FastAPI:
    """Build the application. The broadcast loop runs for the app's lifespan."""
    services = create_futures_services(settings, source)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await services.start()
        logger.info("Futures service started")
        yield
        await services.stop()
        logger.info("Futures service stopped")

    app = FastAPI(title="Futures Indicator Service", lifespan=lifespan)
    app.state.services = services
    app.include_router(create_api_router(services.provider, services.store, services.registry))
    app.include_router(create_stream_router(services.registry))
    return app


def run() -> None:
    """Console entry point: serve on FUTURES_HOST:FUTURES_PORT (default 0.0.0.0:8080)."""
    import uvicorn

    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    host = os.environ.get("FUTURES_HOST", "0.0.0.0")
    port = int(os.environ.get("FUTURES_PORT", "8080"))
    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    run()
