"""Fixtures for futures subsystem tests.

Provides a controllable clock for the cache, canned upstream payloads and a
fake data source that serves them without any network access.
"""

import json

import pytest
from fastapi.testclient import TestClient

from app.futures.cache import ExpiringCache
from app.futures.config import FuturesSettings
from app.futures.exceptions import UpstreamError
from app.futures.provider import SeriesProvider
from app.futures.sina_client import SinaFuturesClient
from app.futures.storage import FuturesStore
from app.main import create_app

# Two trading days of raw Sina tuples. The first bar of each day carries the
# low and the trading date; the others only [time, close, high, volume, oi].
RAW_DAYS = [
    [
        ["09:00", "2500", "2505", "120", "300000", "2498", "2025-10-13"],
        ["09:01", "2502", "2506", "80", "300010"],
    ],
    [
        ["09:00", "2510", "2512", "90", "300100", "2508", "2025-10-14"],
        ["09:01", "2511", "2515", "60", "300120"],
    ],
]


def to_jsonp(symbol: str, days: list) -> str:
    return f"/* sina */\nvar t5nf_{symbol}=({json.dumps(days)});"


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


class FakeSource(SinaFuturesClient):
    """Sina client whose fetch_raw serves canned payloads instead of HTTP.

    Symbols without a payload fail like an upstream 404.
    """

    def __init__(self) -> None:
        super().__init__()
        self.payloads: dict[str, str] = {}
        self.calls: list[str] = []

    def set_days(self, symbol: str, days: list) -> None:
        self.payloads[symbol] = to_jsonp(symbol, days)

    async def fetch_raw(self, symbol: str) -> str:
        self.calls.append(symbol)
        if symbol not in self.payloads:
            raise UpstreamError(symbol, "HTTP 404")
        return self.payloads[symbol]


@pytest.fixture
def event_loop_policy():
    """Use the default event loop policy for all async tests."""
    import asyncio

    return asyncio.DefaultEventLoopPolicy()


@pytest.fixture
def raw_days() -> list:
    return json.loads(json.dumps(RAW_DAYS))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_source(raw_days) -> FakeSource:
    source = FakeSource()
    source.set_days("MA2601", raw_days)
    return source


@pytest.fixture
def store():
    store = FuturesStore("sqlite://")
    yield store
    store.close()


@pytest.fixture
def provider(fake_source, clock, store) -> SeriesProvider:
    cache = ExpiringCache(max_size=10, default_ttl=30.0, clock=clock)
    return SeriesProvider(source=fake_source, cache=cache, store=store)


@pytest.fixture
def recorder():
    """Async send function that records every message it is given."""

    class Recorder:
        def __init__(self) -> None:
            self.messages: list[dict] = []

        async def __call__(self, message: dict) -> None:
            self.messages.append(message)

        def of_type(self, msg_type: str) -> list[dict]:
            return [m for m in self.messages if m["type"] == msg_type]

    return Recorder()


@pytest.fixture
def jsonp():
    """Formatter turning raw days into a Sina-style JSONP payload."""
    return to_jsonp


@pytest.fixture
def client(fake_source):
    """TestClient over the full app, backed by the fake source and an in-memory database.

    The push interval is long enough that no broadcast tick fires during a test.
    """
    settings = FuturesSettings(db_url="sqlite://", push_interval=60.0)
    with TestClient(create_app(settings, source=fake_source)) as client:
        yield client
