"""KD and MACD indicator math.

All functions are pure: the same bar sequence always yields the same output,
and nothing is carried over between calls.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from .models import DatedBar, KDValue, MACDValue

KD_SEED = 50.0


def ema(prices: Sequence[float], period: int) -> np.ndarray:
    """Exponential moving average with a simple-moving-average warm-up.

    Math:
        ema[i] = mean(prices[0..i])                               for i < period
        ema[i] = (prices[i] - ema[i-1]) * 2/(period+1) + ema[i-1]   otherwise

    Index ``period - 1`` is therefore the plain mean of the first ``period``
    prices. The output always has the same length as the input.
    """
    if period < 1:
        raise ValueError(f"EMA period must be >= 1, got {period}")

    values = np.asarray(prices, dtype=float)
    n = len(values)
    out = np.empty(n, dtype=float)
    if n == 0:
        return out

    warmup = min(period, n)
    out[:warmup] = np.cumsum(values[:warmup]) / np.arange(1, warmup + 1)

    multiplier = 2.0 / (period + 1)
    for i in range(warmup, n):
        out[i] = (values[i] - out[i - 1]) * multiplier + out[i - 1]
    return out


def _trailing_extreme(values: np.ndarray, window: int, reducer) -> np.ndarray:
    """Rolling max/min over ``[max(0, i-window+1), i]`` for every index.

    The front is padded with copies of the first value, which never changes
    the extreme of a window that already contains that value.
    """
    padded = np.concatenate([np.full(window - 1, values[0]), values])
    return reducer(sliding_window_view(padded, window), axis=1)


def compute_kd(bars: Sequence[DatedBar], n: int = 21, m1: int = 13, m2: int = 34) -> list[KDValue]:
    """Stochastic oscillator (K fast line, D slow line).

    Math:
        RSV = (close - lowest_low(n)) / (highest_high(n) - lowest_low(n)) * 100
        K   = K * (1 - 1/m1) + RSV / m1
        D   = D * (1 - 1/m2) + K / m2

    K and D both start at 50 whatever the data. RSV is 0 when the window has
    no range (flat market). K and D are not clamped to [0, 100].
    """
    for name, value in (("n", n), ("m1", m1), ("m2", m2)):
        if value < 1:
            raise ValueError(f"KD parameter {name} must be >= 1, got {value}")
    if not bars:
        return []

    highs = np.array([b.high for b in bars], dtype=float)
    lows = np.array([b.low for b in bars], dtype=float)
    # A window longer than the series covers the same bars as the whole series.
    window = min(n, len(bars))
    highest = _trailing_extreme(highs, window, np.max)
    lowest = _trailing_extreme(lows, window, np.min)

    k = d = KD_SEED
    result: list[KDValue] = []
    for i, bar in enumerate(bars):
        spread = highest[i] - lowest[i]
        rsv = (bar.close - lowest[i]) / spread * 100 if spread != 0 else 0.0

        k = k * (1 - 1 / m1) + rsv * (1 / m1)
        d = d * (1 - 1 / m2) + k * (1 / m2)

        result.append(KDValue(date=bar.date, time=bar.time, k=round(float(k), 2), d=round(float(d), 2)))
    return result


def compute_macd(
    bars: Sequence[DatedBar],
    fast: int = 28,
    slow: int = 177,
    signal: int = 9,
) -> list[MACDValue]:
    """Moving-average convergence/divergence.

    macd = ema(close, fast) - ema(close, slow), signal = ema(macd, signal),
    histogram = macd - signal. With the default slow period of 177 the early
    part of a five-day series is dominated by the SMA warm-up; that is
    expected.
    """
    if not bars:
        return []

    closes = np.array([b.close for b in bars], dtype=float)
    macd_line = ema(closes, fast) - ema(closes, slow)
    signal_line = ema(macd_line, signal)
    histogram = macd_line - signal_line

    return [
        MACDValue(
            date=bar.date,
            time=bar.time,
            macd=round(float(macd_line[i]), 4),
            signal=round(float(signal_line[i]), 4),
            histogram=round(float(histogram[i]), 4),
        )
        for i, bar in enumerate(bars)
    ]
