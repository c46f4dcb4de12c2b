"""Environment-driven settings for the futures subsystem."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from .exceptions import ValidationError
from .sina_client import DEFAULT_BASE_URL


@dataclass(frozen=True, slots=True)
class FuturesSettings:
    """Tunables for cache, broadcast cadence, storage and upstream access.

    Cache TTL and push interval are independent: pushing faster than the TTL
    just re-observes the cached series, which the snapshot compare drops.
    """

    cache_max_size: int = 100
    cache_ttl: float = 30.0  # seconds
    push_interval: float = 5.0  # seconds
    db_url: str = "sqlite:///futures-data.db"
    upstream_url: str = DEFAULT_BASE_URL
    http_timeout: float = 10.0  # seconds

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> FuturesSettings:
        """Build settings from FUTURES_* environment variables.

        Unset or blank variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            cache_max_size=_number(env, "FUTURES_CACHE_MAX_SIZE", int, defaults.cache_max_size),
            cache_ttl=_number(env, "FUTURES_CACHE_TTL", float, defaults.cache_ttl),
            push_interval=_number(env, "FUTURES_PUSH_INTERVAL", float, defaults.push_interval),
            db_url=env.get("FUTURES_DB_URL", "").strip() or defaults.db_url,
            upstream_url=env.get("FUTURES_UPSTREAM_URL", "").strip() or defaults.upstream_url,
            http_timeout=_number(env, "FUTURES_HTTP_TIMEOUT", float, defaults.http_timeout),
        )


def _number(env: Mapping[str, str], name: str, kind: type, default):
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = kind(raw)
    except ValueError as e:
        raise ValidationError(f"{name} must be a {kind.__name__}, got {raw!r}") from e
    if value <= 0:
        raise ValidationError(f"{name} must be positive, got {raw!r}")
    return value
