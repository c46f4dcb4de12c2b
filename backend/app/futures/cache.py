"""Bounded in-memory cache with per-entry time-to-live."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class _Entry:
    value: Any
    stored_at: float
    ttl: float


class ExpiringCache:
    """Cache of the most recently fetched series per symbol.

    Expiry is lazy: there is no background timer, expired entries are swept
    out on the next ``get``. Capacity is bounded by ``max_size``; when full,
    inserting a new key evicts the key that was inserted first (insertion
    order, not LRU).

    Not thread-safe. All access happens on the event loop thread.
    """

    def __init__(
        self,
        max_size: int = 100,
        default_ttl: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: dict[str, _Entry] = {}
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._clock = clock

    def get(self, key: str) -> Any | None:
        """Return the live value for ``key``, or None if missing or expired."""
        self._sweep()
        entry = self._entries.get(key)
        return entry.value if entry else None

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store ``value`` under ``key`` with a fresh timestamp.

        Overwriting an existing key keeps its original insertion position.
        """
        if len(self._entries) >= self._max_size and key not in self._entries:
            oldest = next(iter(self._entries), None)
            if oldest is not None:
                del self._entries[oldest]

        self._entries[key] = _Entry(
            value=value,
            stored_at=self._clock(),
            ttl=self._default_ttl if ttl is None else ttl,
        )

    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if an entry was removed."""
        return self._entries.pop(key, None) is not None

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict:
        """Size, capacity and age of every live entry (seconds)."""
        self._sweep()
        now = self._clock()
        return {
            "size": len(self._entries),
            "max_size": self._max_size,
            "entries": [
                {"key": key, "age": now - entry.stored_at, "ttl": entry.ttl}
                for key, entry in self._entries.items()
            ],
        }

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def _sweep(self) -> None:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now - e.stored_at > e.ttl]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.has(key)
