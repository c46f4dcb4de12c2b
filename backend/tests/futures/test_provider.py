"""Tests for SeriesProvider."""

from unittest.mock import MagicMock

import pytest

from app.futures.cache import ExpiringCache
from app.futures.exceptions import SeriesFetchError, UpstreamError, ValidationError
from app.futures.models import KDResponse, MACDResponse, SeriesKind, SeriesResponse
from app.futures.provider import SeriesProvider, normalize_symbol


class TestNormalizeSymbol:
    """Unit tests for symbol validation."""

    def test_strips_and_uppercases(self):
        """Test canonicalization of a contract code."""
        assert normalize_symbol(" ma2601 ") == "MA2601"

    @pytest.mark.parametrize("bad", [None, "", "   ", 2601])
    def test_rejects_missing_or_non_string(self, bad):
        """Test that missing or non-string symbols are rejected."""
        with pytest.raises(ValidationError):
            normalize_symbol(bad)


@pytest.mark.asyncio
class TestSeriesProvider:
    """Unit tests for the SeriesProvider with a fake upstream."""

    async def test_get_kline_fetches_and_formats(self, provider, fake_source):
        """A cache miss goes upstream and returns a formatted series."""
        series = await provider.get_kline("MA2601")

        assert isinstance(series, SeriesResponse)
        assert series.symbol == "MA2601"
        assert len(series.trading_days) == 2
        assert fake_source.calls == ["MA2601"]

    async def test_get_kline_uses_cache(self, provider, fake_source):
        """A second read within the ttl does not go upstream."""
        first = await provider.get_kline("MA2601")
        second = await provider.get_kline("MA2601")

        assert second is first
        assert fake_source.calls == ["MA2601"]

    async def test_get_kline_refetches_after_ttl(self, provider, fake_source, clock):
        """Test that an expired entry triggers a new fetch."""
        await provider.get_kline("MA2601")
        clock.advance(31.0)
        await provider.get_kline("MA2601")
        assert fake_source.calls == ["MA2601", "MA2601"]

    async def test_symbol_is_normalized(self, provider, fake_source):
        """Lowercase input reads the same upstream symbol and cache entry."""
        await provider.get_kline("ma2601")
        await provider.get_kline("MA2601")
        assert fake_source.calls == ["MA2601"]

    async def test_normalized_symbol_is_persisted(self, provider, store):
        """Test that stored rows use the canonical symbol."""
        await provider.get_kline(" ma2601 ")
        assert {row["symbol"] for row in store.query_bars("MA2601")} == {"MA2601"}
        assert store.query_bars("ma2601") == []

    async def test_validation_happens_before_io(self, provider, fake_source):
        """Test that a bad symbol never reaches the upstream source."""
        with pytest.raises(ValidationError):
            await provider.get_kline("")
        assert fake_source.calls == []

    async def test_fetch_failure_is_wrapped(self, provider):
        """Upstream failures surface as SeriesFetchError with symbol and cause."""
        with pytest.raises(SeriesFetchError) as exc_info:
            await provider.get_kline("NOPE")

        err = exc_info.value
        assert err.symbol == "NOPE"
        assert isinstance(err.cause, UpstreamError)
        assert str(err) == "Failed to fetch kline data for NOPE: HTTP 404"

    async def test_fetch_failure_does_not_poison_cache(self, provider, fake_source, raw_days):
        """Failures are not cached: the next read goes upstream again."""
        with pytest.raises(SeriesFetchError):
            await provider.get_kline("IF2512")
        assert provider.cache_stats()["size"] == 0

        fake_source.set_days("IF2512", raw_days)
        series = await provider.get_kline("IF2512")
        assert series.symbol == "IF2512"
        assert fake_source.calls == ["IF2512", "IF2512"]

    async def test_parse_failure_is_wrapped(self, provider, fake_source):
        """Test that a malformed payload is reported like a fetch failure."""
        fake_source.payloads["BAD"] = "var t5nf_BAD=null;"
        with pytest.raises(SeriesFetchError, match="data boundaries"):
            await provider.get_kline("BAD")
        assert provider.cache_stats()["size"] == 0

    async def test_kline_is_persisted(self, provider, store):
        """Test that fetched bars are handed to the store."""
        await provider.get_kline("MA2601")
        rows = store.query_bars("MA2601")
        assert len(rows) == 4
        assert rows[0]["date"] == "2025-10-13"

    async def test_get_kd(self, provider, store):
        """Test KD computation, response shape and persistence."""
        result = await provider.get_kd("MA2601", n=9, m1=3, m2=3)

        assert isinstance(result, KDResponse)
        assert result.parameters == {"n": 9, "m1": 3, "m2": 3}
        assert len(result.values) == 4
        assert [(v.date, v.time) for v in result.values][:2] == [("2025-10-13", "09:00"), ("2025-10-13", "09:01")]
        assert len(store.query_kd("MA2601")) == 4

    async def test_get_macd(self, provider, store):
        """Test MACD computation, defaults and persistence."""
        result = await provider.get_macd("MA2601")

        assert isinstance(result, MACDResponse)
        assert result.parameters == {"fast": 28, "slow": 177, "signal": 9}
        assert len(result.values) == 4
        assert len(store.query_macd("MA2601")) == 4

    async def test_indicators_share_the_kline_cache(self, provider, fake_source):
        """kline, KD and MACD reads for one symbol cost one upstream fetch."""
        await provider.get_kline("MA2601")
        await provider.get_kd("MA2601")
        await provider.get_macd("MA2601")
        assert fake_source.calls == ["MA2601"]

    async def test_indicator_failure_is_wrapped(self, provider):
        """Test that indicator reads propagate the fetch failure."""
        with pytest.raises(SeriesFetchError):
            await provider.get_kd("NOPE")

    async def test_invalid_indicator_parameters(self, provider, fake_source):
        """Test that bad parameters are rejected before any I/O."""
        with pytest.raises(ValidationError):
            await provider.get_kd("MA2601", n=0)
        with pytest.raises(ValidationError):
            await provider.get_macd("MA2601", slow=-1)
        assert fake_source.calls == []

    async def test_get_series_dispatch(self, provider):
        """Test that each kind maps to the matching getter."""
        assert isinstance(await provider.get_series("MA2601", SeriesKind.KLINE), SeriesResponse)
        assert isinstance(await provider.get_series("MA2601", SeriesKind.KD), KDResponse)
        assert isinstance(await provider.get_series("MA2601", SeriesKind.MACD), MACDResponse)

    async def test_store_failure_does_not_fail_read(self, fake_source, clock):
        """A broken sink is logged; the caller still gets the series."""
        store = MagicMock()
        store.save_bars.side_effect = RuntimeError("disk full")
        provider = SeriesProvider(source=fake_source, cache=ExpiringCache(clock=clock), store=store)

        series = await provider.get_kline("MA2601")

        assert series.symbol == "MA2601"
        store.save_bars.assert_called_once()

    async def test_works_without_store(self, fake_source, clock):
        """Test that persistence is optional."""
        provider = SeriesProvider(source=fake_source, cache=ExpiringCache(clock=clock))
        result = await provider.get_kd("MA2601")
        assert len(result.values) == 4

    async def test_cache_management(self, provider, fake_source):
        """Test clearing one symbol and the whole cache."""
        await provider.get_kline("MA2601")
        assert provider.cache_stats()["size"] == 1

        assert provider.clear_cache_for_symbol("ma2601") is True
        assert provider.clear_cache_for_symbol("MA2601") is False

        await provider.get_kline("MA2601")
        provider.clear_cache()
        assert provider.cache_stats()["size"] == 0
        assert fake_source.calls == ["MA2601", "MA2601"]
