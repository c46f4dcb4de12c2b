"""Series provider: cache + upstream source + indicator math + persistence.

Symbols are normalized once at every entry point: surrounding whitespace is
stripped and the code is uppercased, so "ma2601" and "MA2601" are the same series
everywhere, from the cache key to the stored rows. Sina lists futures contract
codes in uppercase.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from .cache import ExpiringCache
from .exceptions import SeriesFetchError, ValidationError
from .indicators import compute_kd, compute_macd
from .interface import FuturesDataSource
from .models import KDResponse, MACDResponse, SeriesKind, SeriesResponse
from .storage import FuturesStore

logger = logging.getLogger(__name__)


def normalize_symbol(symbol: object) -> str:
    """Validate and canonicalize a contract code (e.g. ``" ma2601 "`` -> ``"MA2601"``)."""
    if not isinstance(symbol, str) or not symbol.strip():
        raise ValidationError("symbol parameter is required and must be a string")
    return symbol.strip().upper()


def _require_positive(**params: int) -> None:
    for name, value in params.items():
        if not isinstance(value, int) or value < 1:
            raise ValidationError(f"{name} must be a positive integer, got {value!r}")


class SeriesProvider:
    """Read-side facade for kline, KD and MACD series.

    ``get_kline`` only goes upstream on a cache miss; ``get_kd`` and
    ``get_macd`` always go through ``get_kline`` so they share the same
    cached bars. Successful reads hand their records to the store as a side
    effect. Failed fetches leave the cache untouched.
    """

    def __init__(
        self,
        source: FuturesDataSource,
        cache: ExpiringCache,
        store: FuturesStore | None = None,
    ) -> None:
        self._source = source
        self._cache = cache
        self._store = store

    async def get_kline(self, symbol: str) -> SeriesResponse:
        symbol = normalize_symbol(symbol)

        cached = self._cache.get(symbol)
        if cached is not None:
            logger.debug("Cache hit for %s", symbol)
            return cached

        try:
            text = await self._source.fetch_raw(symbol)
            records = self._source.parse_raw(text)
            series = self._source.to_series_response(records, symbol)
        except Exception as e:
            raise SeriesFetchError(symbol, "fetch kline data", e) from e

        self._cache.set(symbol, series)
        logger.info(
            "Fetched %s: %d trading days, %d bars",
            symbol,
            len(series.trading_days),
            sum(len(day.bars) for day in series.trading_days),
        )
        await self._persist(self._store.save_bars if self._store else None, series.to_records(), symbol)
        return series

    async def get_kd(self, symbol: str, n: int = 21, m1: int = 13, m2: int = 34) -> KDResponse:
        _require_positive(n=n, m1=m1, m2=m2)
        series = await self.get_kline(symbol)

        values = compute_kd(series.flatten_bars(), n, m1, m2)
        result = KDResponse(symbol=series.symbol, n=n, m1=m1, m2=m2, values=tuple(values))

        await self._persist(self._store.save_kd if self._store else None, result.to_records(), series.symbol)
        return result

    async def get_macd(self, symbol: str, fast: int = 28, slow: int = 177, signal: int = 9) -> MACDResponse:
        _require_positive(fast=fast, slow=slow, signal=signal)
        series = await self.get_kline(symbol)

        values = compute_macd(series.flatten_bars(), fast, slow, signal)
        result = MACDResponse(symbol=series.symbol, fast=fast, slow=slow, signal=signal, values=tuple(values))

        await self._persist(self._store.save_macd if self._store else None, result.to_records(), series.symbol)
        return result

    async def get_series(self, symbol: str, kind: SeriesKind) -> SeriesResponse | KDResponse | MACDResponse:
        """Dispatch to the getter for ``kind`` with default parameters."""
        if kind is SeriesKind.KLINE:
            return await self.get_kline(symbol)
        if kind is SeriesKind.KD:
            return await self.get_kd(symbol)
        return await self.get_macd(symbol)

    # --- Cache management ---

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("Series cache cleared")

    def clear_cache_for_symbol(self, symbol: str) -> bool:
        return self._cache.delete(normalize_symbol(symbol))

    def cache_stats(self) -> dict:
        return self._cache.stats()

    # --- Internal ---

    async def _persist(self, save: Callable[[list[dict]], int] | None, records: list[dict], symbol: str) -> None:
        """Write records off the event loop. A failed write never fails the read."""
        if save is None or not records:
            return
        try:
            await asyncio.to_thread(save, records)
        except Exception:
            logger.exception("Failed to persist %d records for %s", len(records), symbol)
