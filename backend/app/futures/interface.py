"""Abstract interface for upstream futures data sources."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import SeriesResponse


class FuturesDataSource(ABC):
    """Contract for upstream minute-bar providers.

    A source is a pure I/O adapter: it fetches raw text, parses it into
    nested raw tuples (one list per trading day) and formats those into a
    SeriesResponse. It holds no cache. Caching, indicator math and
    persistence live in the SeriesProvider.

    Lifecycle:
        source = SinaFuturesClient()
        text = await source.fetch_raw("MA2601")
        records = source.parse_raw(text)
        series = source.to_series_response(records, "MA2601")
        # ... app shutting down ...
        await source.aclose()
    """

    @abstractmethod
    async def fetch_raw(self, symbol: str) -> str:
        """Fetch the raw upstream payload for ``symbol``.

        Raises UpstreamError on transport failures and non-200 statuses.
        """

    @abstractmethod
    def parse_raw(self, text: str) -> list[list[list]]:
        """Extract the per-trading-day raw bar tuples from a payload.

        Raises ParseError when the payload has no recognizable data block.
        """

    @abstractmethod
    def to_series_response(self, records: list[list[list]], symbol: str) -> SeriesResponse:
        """Format parsed raw tuples into a SeriesResponse."""

    async def aclose(self) -> None:
        """Release network resources. Safe to call multiple times."""
