"""Tests for ClientSession and SubscriptionRegistry."""

import pytest

from app.futures.models import SeriesKind
from app.futures.subscriptions import SubscriptionRegistry


class TestClientSession:
    """Unit tests for per-connection subscription state."""

    def test_subscribe_is_idempotent(self, recorder):
        """Re-subscribing to the same key is a no-op."""
        session = SubscriptionRegistry().connect(recorder)
        assert session.subscribe("MA2601", SeriesKind.KLINE) is True
        assert session.subscribe("MA2601", SeriesKind.KLINE) is False
        assert session.subscriptions() == [("MA2601", SeriesKind.KLINE)]

    def test_subscriptions_keep_insertion_order(self, recorder):
        """Test that enumeration order is stable."""
        session = SubscriptionRegistry().connect(recorder)
        session.subscribe("MA2601", SeriesKind.MACD)
        session.subscribe("IF2512", SeriesKind.KLINE)
        session.subscribe("MA2601", SeriesKind.KD)
        assert session.subscriptions() == [
            ("MA2601", SeriesKind.MACD),
            ("IF2512", SeriesKind.KLINE),
            ("MA2601", SeriesKind.KD),
        ]

    def test_unsubscribe(self, recorder):
        """Test removing a subscription, twice."""
        session = SubscriptionRegistry().connect(recorder)
        session.subscribe("MA2601", SeriesKind.KD)
        assert session.unsubscribe("MA2601", SeriesKind.KD) is True
        assert session.unsubscribe("MA2601", SeriesKind.KD) is False
        assert session.subscriptions() == []

    def test_snapshot_compare(self, recorder):
        """Only a structurally equal payload counts as unchanged."""
        session = SubscriptionRegistry().connect(recorder)
        key = ("MA2601", SeriesKind.KD)

        assert not session.is_unchanged(key, {"a": 1})
        session.remember(key, {"a": 1, "b": [1, 2]})
        assert session.is_unchanged(key, {"b": [1, 2], "a": 1})
        assert not session.is_unchanged(key, {"a": 1, "b": [1, 3]})

    def test_unsubscribe_drops_snapshot(self, recorder):
        """A later re-subscription starts from a clean snapshot."""
        session = SubscriptionRegistry().connect(recorder)
        key = ("MA2601", SeriesKind.KLINE)
        session.subscribe(*key)
        session.remember(key, {"a": 1})
        session.unsubscribe(*key)
        assert not session.is_unchanged(key, {"a": 1})

    @pytest.mark.asyncio
    async def test_send_after_close_is_dropped(self, recorder):
        """Test that a closed session never sends."""
        registry = SubscriptionRegistry()
        session = registry.connect(recorder)
        await session.send({"type": "pong"})
        registry.disconnect(session.connection_id)
        await session.send({"type": "pong"})
        assert recorder.messages == [{"type": "pong"}]


class TestSubscriptionRegistry:
    """Unit tests for the process-wide registry."""

    def test_connect_assigns_unique_ids(self, recorder):
        """Test that each connection gets its own id and session."""
        registry = SubscriptionRegistry()
        a = registry.connect(recorder)
        b = registry.connect(recorder)
        assert a.connection_id != b.connection_id
        assert registry.get(a.connection_id) is a
        assert len(registry) == 2

    def test_disconnect(self, recorder):
        """Disconnecting removes all of the connection's state."""
        registry = SubscriptionRegistry()
        session = registry.connect(recorder)
        session.subscribe("MA2601", SeriesKind.KLINE)

        registry.disconnect(session.connection_id)

        assert session.closed
        assert registry.get(session.connection_id) is None
        assert registry.sessions() == []

    def test_disconnect_unknown_is_noop(self):
        """Test that disconnecting twice does not raise."""
        registry = SubscriptionRegistry()
        registry.disconnect(42)

    def test_sessions_in_connection_order(self, recorder):
        """Test stable enumeration of live sessions."""
        registry = SubscriptionRegistry()
        ids = [registry.connect(recorder).connection_id for _ in range(3)]
        assert [s.connection_id for s in registry.sessions()] == ids

    def test_stats(self, recorder):
        """Test client counts per subscription."""
        registry = SubscriptionRegistry()
        a = registry.connect(recorder)
        b = registry.connect(recorder)
        a.subscribe("MA2601", SeriesKind.KLINE)
        b.subscribe("MA2601", SeriesKind.KLINE)
        b.subscribe("MA2601", SeriesKind.MACD)

        stats = registry.stats()
        assert stats["connected_clients"] == 2
        assert {(s["symbol"], s["data_type"], s["client_count"]) for s in stats["subscriptions"]} == {
            ("MA2601", "kline", 2),
            ("MA2601", "macd", 1),
        }
