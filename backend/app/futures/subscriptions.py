"""Per-connection subscription state and last-sent snapshots."""

from __future__ import annotations

import itertools
import logging
from collections import Counter
from collections.abc import Awaitable, Callable

from .models import SeriesKind

logger = logging.getLogger(__name__)

SubscriptionKey = tuple[str, SeriesKind]
SendFunc = Callable[[dict], Awaitable[None]]


class ClientSession:
    """State owned by one live connection.

    Holds the set of (symbol, kind) subscriptions, in the order they were
    made, and the payload last transmitted for each of them. Everything here
    is dropped when the connection closes; a reconnecting client starts from
    an empty snapshot map and receives full data again.
    """

    def __init__(self, connection_id: int, send: SendFunc) -> None:
        self.connection_id = connection_id
        self._send = send
        self._subscriptions: dict[SubscriptionKey, None] = {}
        self._snapshots: dict[SubscriptionKey, dict] = {}
        self.closed = False

    def subscribe(self, symbol: str, kind: SeriesKind) -> bool:
        """Add a subscription. Returns False if it already existed."""
        key = (symbol, kind)
        if key in self._subscriptions:
            return False
        self._subscriptions[key] = None
        return True

    def unsubscribe(self, symbol: str, kind: SeriesKind) -> bool:
        """Remove a subscription and its snapshot. Returns False if it was not present."""
        key = (symbol, kind)
        self._snapshots.pop(key, None)
        if key not in self._subscriptions:
            return False
        del self._subscriptions[key]
        return True

    def subscriptions(self) -> list[SubscriptionKey]:
        return list(self._subscriptions)

    def is_unchanged(self, key: SubscriptionKey, payload: dict) -> bool:
        """True if ``payload`` equals what was last sent for ``key``."""
        return key in self._snapshots and self._snapshots[key] == payload

    def remember(self, key: SubscriptionKey, payload: dict) -> None:
        self._snapshots[key] = payload

    async def send(self, message: dict) -> None:
        if self.closed:
            return
        await self._send(message)


class SubscriptionRegistry:
    """All live client sessions, keyed by connection id.

    Owned by the application; the websocket endpoint adds and removes
    sessions, the BroadcastLoop reads them on every tick.
    """

    def __init__(self) -> None:
        self._sessions: dict[int, ClientSession] = {}
        self._ids = itertools.count(1)

    def connect(self, send: SendFunc) -> ClientSession:
        session = ClientSession(next(self._ids), send)
        self._sessions[session.connection_id] = session
        logger.info("Client %d connected (%d live)", session.connection_id, len(self._sessions))
        return session

    def disconnect(self, connection_id: int) -> None:
        """Drop a session. No-op if already gone."""
        session = self._sessions.pop(connection_id, None)
        if session is not None:
            session.closed = True
            logger.info("Client %d disconnected (%d live)", connection_id, len(self._sessions))

    def get(self, connection_id: int) -> ClientSession | None:
        return self._sessions.get(connection_id)

    def sessions(self) -> list[ClientSession]:
        """Snapshot of live sessions in connection order."""
        return list(self._sessions.values())

    def stats(self) -> dict:
        """Connected client count and how many clients hold each subscription."""
        counts: Counter[SubscriptionKey] = Counter()
        for session in self._sessions.values():
            counts.update(session.subscriptions())
        return {
            "connected_clients": len(self._sessions),
            "subscriptions": [
                {"symbol": symbol, "data_type": kind.value, "client_count": count}
                for (symbol, kind), count in counts.items()
            ],
        }

    def __len__(self) -> int:
        return len(self._sessions)
