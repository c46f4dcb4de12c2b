"""Periodic differential push of subscribed series to live clients."""

from __future__ import annotations

import asyncio
import logging

from .provider import SeriesProvider
from .subscriptions import ClientSession, SubscriptionKey, SubscriptionRegistry

logger = logging.getLogger(__name__)


class BroadcastLoop:
    """Polls the SeriesProvider for every live subscription and pushes changes.

    Every ``interval`` seconds a tick is launched as its own task. A tick
    walks all sessions (concurrently) and each session's subscriptions (in
    order), fetches the current series and sends it only when it differs
    from that session's last-sent snapshot. Lookups for the same
    (symbol, kind) are shared between sessions within one tick.

    Ticks are not serialized: if a slow upstream fetch keeps tick N running,
    tick N+1 still starts on schedule. Cache TTL and push interval are
    independent; a tick that lands inside the TTL re-reads the cached series
    and is deduplicated by the snapshot compare.

    A failure for one subscription is reported to that client as an
    ``error`` message and does not affect other subscriptions or clients.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        provider: SeriesProvider,
        interval: float = 5.0,
    ) -> None:
        self._registry = registry
        self._provider = provider
        self._interval = interval
        self._task: asyncio.Task | None = None
        self._ticks: set[asyncio.Task] = set()

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run_loop(), name="broadcast-loop")
        logger.info("Broadcast loop started: %.1fs interval", self._interval)

    async def stop(self) -> None:
        """Cancel the scheduler and any tick still in flight. Safe to call twice."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

        pending = list(self._ticks)
        for tick in pending:
            tick.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._ticks.clear()
        logger.info("Broadcast loop stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> int:
        """Run one push cycle. Returns the number of data messages sent."""
        sessions = self._registry.sessions()
        if not sessions:
            return 0

        lookups: dict[SubscriptionKey, asyncio.Task] = {}
        sent = await asyncio.gather(*(self._push_session(s, lookups) for s in sessions))
        total = sum(sent)
        logger.debug("Tick: %d sessions, %d lookups, %d messages sent", len(sessions), len(lookups), total)
        return total

    # --- Internal ---

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            tick = asyncio.create_task(self._guarded_tick(), name="broadcast-tick")
            self._ticks.add(tick)
            tick.add_done_callback(self._ticks.discard)

    async def _guarded_tick(self) -> None:
        try:
            await self.tick()
        except Exception:
            logger.exception("Broadcast tick failed")

    def _lookup(self, key: SubscriptionKey, lookups: dict[SubscriptionKey, asyncio.Task]) -> asyncio.Task:
        task = lookups.get(key)
        if task is None:
            symbol, kind = key
            task = asyncio.ensure_future(self._provider.get_series(symbol, kind))
            lookups[key] = task
        return task

    async def _push_session(
        self,
        session: ClientSession,
        lookups: dict[SubscriptionKey, asyncio.Task],
    ) -> int:
        sent = 0
        for key in session.subscriptions():
            symbol, kind = key
            try:
                result = await self._lookup(key, lookups)
            except Exception as e:
                if session.closed or key not in session.subscriptions():
                    continue
                logger.warning("Push failed for client %d (%s:%s): %s", session.connection_id, symbol, kind.value, e)
                await self._deliver(
                    session,
                    {"type": "error", "dataType": kind.value, "symbol": symbol, "message": str(e)},
                )
                continue

            # The client may have left or unsubscribed while we were waiting.
            if session.closed or key not in session.subscriptions():
                continue

            payload = result.to_dict()
            if session.is_unchanged(key, payload):
                logger.debug("Client %d: %s:%s unchanged, skipped", session.connection_id, symbol, kind.value)
                continue

            delivered = await self._deliver(
                session,
                {"type": "data", "dataType": kind.value, "symbol": symbol, "data": payload},
            )
            if delivered:
                session.remember(key, payload)
                sent += 1
        return sent

    async def _deliver(self, session: ClientSession, message: dict) -> bool:
        if session.closed:
            return False
        try:
            await session.send(message)
        except Exception as e:
            logger.warning("Send to client %d failed: %s", session.connection_id, e)
            return False
        return True
