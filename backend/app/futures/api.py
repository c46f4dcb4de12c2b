"""HTTP command surface: series reads, history queries, cache and database management."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from .exceptions import SeriesFetchError, ValidationError
from .models import SeriesKind
from .provider import SeriesProvider, normalize_symbol
from .storage import FuturesStore
from .subscriptions import SubscriptionRegistry

logger = logging.getLogger(__name__)


def create_api_router(
    provider: SeriesProvider,
    store: FuturesStore,
    registry: SubscriptionRegistry,
) -> APIRouter:
    """Create the REST router. Handlers are thin pass-throughs to the provider and store."""
    router = APIRouter(prefix="/api/futures", tags=["futures"])

    # Static paths are registered before /{symbol}/... so they are matched first.

    @router.get("/cache/stats")
    async def cache_stats() -> dict:
        return {"success": True, "cache": provider.cache_stats()}

    @router.delete("/cache")
    async def clear_cache() -> dict:
        provider.clear_cache()
        return {"success": True, "message": "All cache cleared"}

    @router.delete("/cache/{symbol}")
    async def clear_cache_for_symbol(symbol: str) -> dict:
        symbol = _symbol(symbol)
        deleted = provider.clear_cache_for_symbol(symbol)
        message = f"Cache cleared for {symbol}" if deleted else f"No cache found for {symbol}"
        return {"success": True, "message": message}

    @router.get("/database/stats")
    async def database_stats() -> dict:
        return {"success": True, "database": await asyncio.to_thread(store.stats)}

    @router.delete("/database")
    async def clear_database() -> dict:
        await asyncio.to_thread(store.clear_all)
        return {"success": True, "message": "All database data cleared"}

    @router.delete("/database/{symbol}")
    async def clear_database_for_symbol(symbol: str) -> dict:
        symbol = _symbol(symbol)
        await asyncio.to_thread(store.clear_symbol, symbol)
        return {"success": True, "message": f"Database data cleared for {symbol}"}

    @router.get("/stream/stats")
    async def stream_stats() -> dict:
        return registry.stats()

    @router.get("/{symbol}/kline")
    async def get_kline(symbol: str) -> dict:
        return await _call(provider.get_kline(_symbol(symbol)))

    @router.get("/{symbol}/kd")
    async def get_kd(
        symbol: str,
        n: int = Query(21, ge=1),
        m1: int = Query(13, ge=1),
        m2: int = Query(34, ge=1),
    ) -> dict:
        return await _call(provider.get_kd(_symbol(symbol), n, m1, m2))

    @router.get("/{symbol}/macd")
    async def get_macd(
        symbol: str,
        fast: int = Query(28, ge=1),
        slow: int = Query(177, ge=1),
        signal: int = Query(9, ge=1),
    ) -> dict:
        return await _call(provider.get_macd(_symbol(symbol), fast, slow, signal))

    @router.get("/{symbol}/history/{data_type}")
    async def query_history(
        symbol: str,
        data_type: SeriesKind,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> dict:
        symbol = _symbol(symbol)
        query = {
            SeriesKind.KLINE: store.query_bars,
            SeriesKind.KD: store.query_kd,
            SeriesKind.MACD: store.query_macd,
        }[data_type]
        rows = await asyncio.to_thread(query, symbol, start_date, end_date)
        return {
            "symbol": symbol,
            "start_date": start_date,
            "end_date": end_date,
            "count": len(rows),
            "data": rows,
        }

    return router


def _symbol(symbol: str) -> str:
    try:
        return normalize_symbol(symbol)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


async def _call(read: Any) -> dict:
    """Await a provider read and map its failures to HTTP errors."""
    try:
        result = await read
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except SeriesFetchError as e:
        logger.warning("%s", e)
        raise HTTPException(status_code=502, detail=str(e)) from e
    return result.to_dict()
