"""
Statistics Primitives

Shared numerical helpers for the risk calculators:
- mean / variance / standard deviation (population by default)
- sorted-index percentile used by VaR
- ordinary least squares trend slope
- average true range

All helpers degrade to 0.0 on empty input instead of raising.
"""

from typing import Mapping, Sequence
import math

import numpy as np


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=float)


def mean(values: Sequence[float]) -> float:
    arr = _as_array(values)
    if arr.size == 0:
        return 0.0
    return float(arr.mean())


def variance(values: Sequence[float], ddof: int = 0) -> float:
    """Variance with ddof degrees of freedom removed. 0.0 when n <= ddof."""
    arr = _as_array(values)
    if arr.size <= ddof:
        return 0.0
    return float(arr.var(ddof=ddof))


def std_dev(values: Sequence[float], ddof: int = 0) -> float:
    return math.sqrt(variance(values, ddof=ddof))


def percentile_index(n: int, tail_fraction: float) -> int:
    """
    floor(tail_fraction * n), clamped to [0, n-1].

    The product is rounded to 9 places first: (1 - 0.90) * 10 evaluates to
    0.9999999999999998 in binary floating point and must index 1, not 0.
    """
    if n <= 0:
        return 0
    index = int(math.floor(round(tail_fraction * n, 9)))
    return min(max(index, 0), n - 1)


def percentile(values: Sequence[float], tail_fraction: float) -> float:
    """
    Value at the sorted-index percentile.

    Not interpolated: sorts ascending and picks element floor(tail_fraction * n).
    """
    arr = np.sort(_as_array(values))
    if arr.size == 0:
        return 0.0
    return float(arr[percentile_index(arr.size, tail_fraction)])


def linear_regression_slope(values: Sequence[float]) -> float:
    """
    OLS slope of values against their index (0, 1, ..., n-1).

    Returns 0.0 with fewer than 2 points.
    """
    y = _as_array(values)
    n = y.size
    if n < 2:
        return 0.0
    x = np.arange(n, dtype=float)
    sum_x = x.sum()
    denominator = n * (x * x).sum() - sum_x * sum_x
    if denominator == 0:
        return 0.0
    return float((n * (x * y).sum() - sum_x * y.sum()) / denominator)


def average_true_range(candles: Sequence[Mapping[str, float]], period: int = 14) -> float:
    """
    Simple-average ATR over the last `period` true ranges.

    Each candle needs high, low and close. Returns 0.0 when fewer than
    period + 1 candles are available.
    """
    if period < 1 or len(candles) < period + 1:
        return 0.0

    high = np.array([float(c['high']) for c in candles[1:]])
    low = np.array([float(c['low']) for c in candles[1:]])
    prev_close = np.array([float(c['close']) for c in candles[:-1]])

    true_range = np.maximum.reduce([
        high - low,
        np.abs(high - prev_close),
        np.abs(low - prev_close),
    ])
    return float(true_range[-period:].mean())
