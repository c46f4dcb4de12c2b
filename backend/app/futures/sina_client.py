"""Sina Finance JSONP client for minute-level futures bars."""

from __future__ import annotations

import json
import logging
import re

import httpx

from .exceptions import ParseError, UpstreamError
from .interface import FuturesDataSource
from .models import PriceBar, SeriesResponse, TradingDay

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://stock2.finance.sina.com.cn/futures/api/jsonp.php"

_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)


class SinaFuturesClient(FuturesDataSource):
    """FuturesDataSource backed by Sina's ``getFourDaysLine`` JSONP endpoint.

    The endpoint answers with something like::

        /* comment */ var t5nf_MA2601=([[["09:00",2500,2501,120,300000,2499,"2025-10-13"],
                                          ["09:01",2502,2503,80,300010]], ...]);

    i.e. one list per trading day, one tuple per minute. Only the first bar
    of a day carries the low price and the trading date (7 elements); the
    others have 5 and their low is taken to be the close.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client

    async def fetch_raw(self, symbol: str) -> str:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)

        url = f"{self._base_url}/var t5nf_{symbol}=/InnerFuturesNewService.getFourDaysLine"
        try:
            resp = await self._client.get(url, params={"symbol": symbol})
        except httpx.HTTPError as e:
            raise UpstreamError(symbol, f"request failed: {e}") from e

        if resp.status_code != 200:
            logger.warning("Sina request for %s failed: HTTP %d", symbol, resp.status_code)
            raise UpstreamError(symbol, f"HTTP {resp.status_code}")

        logger.debug("Sina: fetched %d bytes for %s", len(resp.text), symbol)
        return resp.text

    def parse_raw(self, text: str) -> list[list[list]]:
        cleaned = _COMMENT_RE.sub("", text)
        first = cleaned.find("([[[")
        last = cleaned.rfind("]")
        if first == -1 or last == -1:
            raise ParseError("Could not find data boundaries in JSONP response")

        try:
            data = json.loads(cleaned[first + 1 : last + 1])
        except json.JSONDecodeError as e:
            raise ParseError(f"Failed to parse JSONP: {e}") from e

        if not isinstance(data, list):
            raise ParseError("JSONP payload is not a list of trading days")
        return data

    def to_series_response(self, records: list[list[list]], symbol: str) -> SeriesResponse:
        days: list[TradingDay] = []
        for day_data in records:
            bars: list[PriceBar] = []
            trading_date = ""

            for raw in day_data:
                if not raw:
                    continue
                try:
                    close = float(raw[1])
                    low = close
                    if len(raw) == 7:
                        low = float(raw[5])
                        trading_date = str(raw[6])
                    bars.append(
                        PriceBar(
                            time=str(raw[0]),
                            open=close,
                            high=float(raw[2]),
                            low=low,
                            close=close,
                            volume=float(raw[3]),
                            open_interest=float(raw[4]),
                        )
                    )
                except (IndexError, TypeError, ValueError) as e:
                    raise ParseError(f"Malformed bar {raw!r}: {e}") from e

            if bars:
                days.append(TradingDay(date=trading_date or "unknown", bars=tuple(bars)))

        return SeriesResponse(symbol=symbol, trading_days=tuple(days))

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
