"""Data models for futures series and derived indicators."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class SeriesKind(str, Enum):
    """Kinds of series a client can subscribe to."""

    KLINE = "kline"
    KD = "kd"
    MACD = "macd"


@dataclass(frozen=True, slots=True)
class PriceBar:
    """One minute-level sample.

    Upstream does not publish an open price, so ``open`` is always equal to
    ``close``.
    """

    time: str
    open: float
    high: float
    low: float
    close: float
    volume: float
    open_interest: float

    def to_dict(self) -> dict:
        return {
            "time": self.time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
            "openInterest": self.open_interest,
        }


@dataclass(frozen=True, slots=True)
class DatedBar:
    """A PriceBar paired with the trading date it belongs to."""

    date: str
    bar: PriceBar

    @property
    def time(self) -> str:
        return self.bar.time

    @property
    def high(self) -> float:
        return self.bar.high

    @property
    def low(self) -> float:
        return self.bar.low

    @property
    def close(self) -> float:
        return self.bar.close


@dataclass(frozen=True, slots=True)
class TradingDay:
    """All bars of one trading day, in time order."""

    date: str
    bars: tuple[PriceBar, ...] = ()

    def to_dict(self) -> dict:
        return {"date": self.date, "bars": [bar.to_dict() for bar in self.bars]}


@dataclass(frozen=True, slots=True)
class SeriesResponse:
    """Minute bars for one symbol, grouped by trading day in ascending date order."""

    symbol: str
    trading_days: tuple[TradingDay, ...] = ()

    def flatten_bars(self) -> list[DatedBar]:
        """Chronological bar sequence across all trading days."""
        return [DatedBar(date=day.date, bar=bar) for day in self.trading_days for bar in day.bars]

    def to_records(self) -> list[dict]:
        """Flat storage records, one per bar."""
        return [
            {"symbol": self.symbol, "date": dated.date, **dated.bar.to_dict()}
            for dated in self.flatten_bars()
        ]

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "tradingDays": [day.to_dict() for day in self.trading_days],
        }


@dataclass(frozen=True, slots=True)
class KDValue:
    date: str
    time: str
    k: float
    d: float

    def to_dict(self) -> dict:
        return {"date": self.date, "time": self.time, "k": self.k, "d": self.d}


@dataclass(frozen=True, slots=True)
class MACDValue:
    date: str
    time: str
    macd: float
    signal: float
    histogram: float

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "time": self.time,
            "macd": self.macd,
            "signal": self.signal,
            "histogram": self.histogram,
        }


@dataclass(frozen=True, slots=True)
class KDResponse:
    """KD series for a symbol with the parameters used to compute it."""

    symbol: str
    n: int
    m1: int
    m2: int
    values: tuple[KDValue, ...] = field(default_factory=tuple)

    @property
    def parameters(self) -> dict[str, int]:
        return {"n": self.n, "m1": self.m1, "m2": self.m2}

    def to_records(self) -> list[dict]:
        return [{"symbol": self.symbol, **value.to_dict()} for value in self.values]

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "parameters": self.parameters,
            "values": [value.to_dict() for value in self.values],
        }


@dataclass(frozen=True, slots=True)
class MACDResponse:
    """MACD series for a symbol with the parameters used to compute it."""

    symbol: str
    fast: int
    slow: int
    signal: int
    values: tuple[MACDValue, ...] = field(default_factory=tuple)

    @property
    def parameters(self) -> dict[str, int]:
        return {"fast": self.fast, "slow": self.slow, "signal": self.signal}

    def to_records(self) -> list[dict]:
        return [{"symbol": self.symbol, **value.to_dict()} for value in self.values]

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "parameters": self.parameters,
            "values": [value.to_dict() for value in self.values],
        }
