"""Statistical primitives shared by both forecasters.

Every function accepts any numeric sequence and never mutates it.
"""
from __future__ import annotations

import math
from typing import Final, Sequence

import numpy as np
from scipy import stats as st

from sprint_forecast.forecasting.domain.models import (
    DistributionBucket,
    OutlierReport,
    StabilityDescriptor,
    TrendDescriptor,
)


TREND_MODERATE_THRESHOLD: Final[float] = 0.05
TREND_STRONG_THRESHOLD: Final[float] = 0.10

CV_HIGH_STABILITY: Final[float] = 0.30
CV_MODERATE_STABILITY: Final[float] = 0.50

MEDIAN_LOW_THRESHOLD: Final[float] = 0.50
MIN_POINTS_FOR_OUTLIERS: Final[int] = 4


def round_half_up(x: float) -> int:
    # Python's round() is banker's rounding; reported figures round halves up.
    return int(math.floor(x + 0.5))


def percentile(values: Sequence[float], p: float) -> float:
    """Linear interpolation at fractional index p/100 * (n - 1)."""
    if len(values) == 0:
        return 0.0
    return float(np.percentile(np.asarray(values, dtype=float), p))


def mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=float)))


def standard_deviation(values: Sequence[float]) -> float:
    """Population standard deviation; 0 below two values."""
    if len(values) < 2:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float)))


def weighted_stats(
    values: Sequence[float],
    weights: Sequence[float] | None = None,
) -> tuple[float, float]:
    """Weighted mean and standard deviation.

    The variance is scaled by n_eff / (n_eff - 1), where n_eff = 1 / sum(w^2)
    is the effective sample size, whenever n_eff > 1. With uniform weights
    this reduces to the ordinary sample standard deviation.
    """
    x = np.asarray(values, dtype=float)
    if x.size == 0:
        return 0.0, 0.0
    if weights is None:
        w = np.full(x.size, 1.0 / x.size)
    else:
        w = np.asarray(weights, dtype=float)
        if w.shape != x.shape:
            raise ValueError(f"Expected {x.size} weights, got {w.size}")

    m = float(np.sum(w * x))
    variance = float(np.sum(w * (x - m) ** 2))
    effective_n = 1.0 / float(np.sum(w * w))
    if effective_n > 1.0:
        variance = variance * effective_n / (effective_n - 1.0)
    return m, math.sqrt(variance)


def _median_sorted(xs: Sequence[float]) -> float:
    n = len(xs)
    if n % 2 == 0:
        return (xs[n // 2 - 1] + xs[n // 2]) / 2.0
    return float(xs[n // 2])


def quartiles(values: Sequence[float]) -> tuple[float, float, float]:
    """Q1, median and Q3 as medians of the lower and upper halves.

    For odd lengths the median element belongs to neither half.
    """
    xs = sorted(float(v) for v in values)
    n = len(xs)
    if n == 0:
        return 0.0, 0.0, 0.0
    lower = xs[: n // 2]
    upper = xs[(n + 1) // 2 :]
    q1 = _median_sorted(lower) if lower else xs[0]
    q3 = _median_sorted(upper) if upper else xs[-1]
    return q1, _median_sorted(xs), q3


def detect_outliers_low(
    values: Sequence[float],
    median_threshold: float = MEDIAN_LOW_THRESHOLD,
) -> OutlierReport:
    """Flag unusually low sprints; high spikes are never outliers.

    A value is flagged iff it is below ``median * median_threshold`` and no
    greater than Q1.
    """
    vals = tuple(float(v) for v in values)
    if len(vals) < MIN_POINTS_FOR_OUTLIERS:
        return OutlierReport(cleaned=vals, outliers=(), outlier_indices=())

    q1, median, _ = quartiles(vals)
    cutoff = median * median_threshold

    cleaned: list[float] = []
    outliers: list[float] = []
    indices: list[int] = []
    for i, v in enumerate(vals):
        if v < cutoff and v <= q1:
            outliers.append(v)
            indices.append(i)
        else:
            cleaned.append(v)
    return OutlierReport(cleaned=tuple(cleaned), outliers=tuple(outliers), outlier_indices=tuple(indices))


def detect_trend(
    values: Sequence[float],
    moderate_threshold: float = TREND_MODERATE_THRESHOLD,
    strong_threshold: float = TREND_STRONG_THRESHOLD,
) -> TrendDescriptor:
    """Least-squares slope against the 1-based sprint index."""
    y = np.asarray(values, dtype=float)
    if y.size < 2:
        return TrendDescriptor(slope=0.0, relative_change=0.0, direction="stable", strength="none")

    if np.all(y == y[0]):
        slope = 0.0
    else:
        slope = float(st.linregress(np.arange(1, y.size + 1, dtype=float), y).slope)
    y_mean = float(np.mean(y))
    relative_change = slope / y_mean if y_mean != 0 else 0.0

    magnitude = abs(relative_change)
    if magnitude >= strong_threshold:
        strength = "strong"
    elif magnitude >= moderate_threshold:
        strength = "moderate"
    else:
        return TrendDescriptor(slope=slope, relative_change=relative_change, direction="stable", strength="none")

    direction = "up" if relative_change > 0 else "down"
    return TrendDescriptor(
        slope=slope,
        relative_change=relative_change,
        direction=direction,
        strength=strength,
    )


def classify_stability(
    values: Sequence[float],
    high_cv: float = CV_HIGH_STABILITY,
    moderate_cv: float = CV_MODERATE_STABILITY,
) -> StabilityDescriptor:
    """Coefficient-of-variation stability; a zero mean counts as low."""
    if len(values) < 2:
        return StabilityDescriptor(cv=0.0, level="unknown")
    m = mean(values)
    if m == 0:
        return StabilityDescriptor(cv=0.0, level="low")

    cv = standard_deviation(values) / m
    if cv < high_cv:
        level = "high"
    elif cv < moderate_cv:
        level = "moderate"
    else:
        level = "low"
    return StabilityDescriptor(cv=cv, level=level)


def frequency_table(values: Sequence[float]) -> tuple[DistributionBucket, ...]:
    """Value -> count -> percentage (one decimal), ascending by value."""
    x = np.asarray(values, dtype=float)
    if x.size == 0:
        return ()
    uniq, counts = np.unique(x, return_counts=True)
    total = x.size
    return tuple(
        DistributionBucket(
            value=float(v),
            count=int(c),
            percentage=round_half_up(c / total * 1000) / 10,
        )
        for v, c in zip(uniq, counts)
    )
