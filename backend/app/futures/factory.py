"""Factory wiring the futures subsystem's components together."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .broadcast import BroadcastLoop
from .cache import ExpiringCache
from .config import FuturesSettings
from .interface import FuturesDataSource
from .provider import SeriesProvider
from .sina_client import SinaFuturesClient
from .storage import FuturesStore
from .subscriptions import SubscriptionRegistry

logger = logging.getLogger(__name__)


@dataclass
class FuturesServices:
    """Process-wide components, owned by the application instance."""

    settings: FuturesSettings
    source: FuturesDataSource
    cache: ExpiringCache
    store: FuturesStore
    provider: SeriesProvider
    registry: SubscriptionRegistry
    broadcaster: BroadcastLoop

    async def start(self) -> None:
        await self.broadcaster.start()

    async def stop(self) -> None:
        """Stop pushing first so no tick races the teardown of its dependencies."""
        await self.broadcaster.stop()
        await self.source.aclose()
        self.store.close()


def create_futures_services(
    settings: FuturesSettings | None = None,
    source: FuturesDataSource | None = None,
) -> FuturesServices:
    """Build all components from settings (FUTURES_* environment by default).

    Pass ``source`` to replace the Sina client, e.g. with a fake in tests.
    Returns unstarted services. Caller must await services.start().
    """
    settings = settings or FuturesSettings.from_env()

    if source is None:
        source = SinaFuturesClient(base_url=settings.upstream_url, timeout=settings.http_timeout)
        logger.info("Futures data source: Sina (%s)", settings.upstream_url)
    else:
        logger.info("Futures data source: %s", type(source).__name__)

    cache = ExpiringCache(max_size=settings.cache_max_size, default_ttl=settings.cache_ttl)
    store = FuturesStore(settings.db_url)
    provider = SeriesProvider(source=source, cache=cache, store=store)
    registry = SubscriptionRegistry()
    broadcaster = BroadcastLoop(registry, provider, interval=settings.push_interval)

    return FuturesServices(
        settings=settings,
        source=source,
        cache=cache,
        store=store,
        provider=provider,
        registry=registry,
        broadcaster=broadcaster,
    )
