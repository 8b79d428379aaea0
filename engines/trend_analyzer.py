#!/usr/bin/env python3
# SPDX-License-Identifier: BUSL-1.1
"""
trend_analyzer.py - Robust Trend Estimation for Noisy Oracle Series

Oracle deviation series are spiky: one bad round from a single source can
drag a least-squares fit far off. Everything here is built on medians:

- rolling-median smoothing (edge windows are truncated, not wrapped)
- Theil-Sen slope: median of all pairwise slopes
- log-scale OLS for a growth rate used as trend strength
- MAD volatility scaled to be comparable with a standard deviation
"""

import math
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from shared.detection_types import TrendAnalysis, TrendDirection

MAD_NORMAL_CONSISTENCY = 1.4826
LOG_FLOOR = math.log(1e-10)
MAX_EXP_ARG = 700.0
STRENGTH_GROWTH_SCALE = 0.1


@dataclass(frozen=True)
class RegressionResult:
    slope: float
    intercept: float


@dataclass(frozen=True)
class LogRegressionResult:
    slope: float
    intercept: float
    growth_rate: float


def _median(values: Sequence[float]) -> float:
    return float(np.median(np.asarray(values, dtype=float)))


def rolling_median_smooth(values: Sequence[float], window_size: int = 3) -> List[float]:
    """Replace each point by the median of the window centred on it."""
    if window_size % 2 == 0:
        window_size += 1
    half = window_size // 2
    n = len(values)

    smoothed = []
    for i in range(n):
        window = values[max(0, i - half) : min(n, i + half + 1)]
        smoothed.append(_median(window))
    return smoothed


def theil_sen_regression(x: Sequence[float], y: Sequence[float]) -> RegressionResult:
    """
    Theil-Sen estimator.

    slope = median of (y[j]-y[i])/(x[j]-x[i]) over all pairs i<j with
    distinct x; intercept = median of y[i] - slope*x[i]. O(n^2) pairs.
    """
    n = min(len(x), len(y))
    if n < 2:
        return RegressionResult(slope=0.0, intercept=0.0)

    xs = np.asarray(x[:n], dtype=float)
    ys = np.asarray(y[:n], dtype=float)

    i, j = np.triu_indices(n, k=1)
    dx = xs[j] - xs[i]
    valid = dx != 0
    if not np.any(valid):
        return RegressionResult(slope=0.0, intercept=0.0)

    slopes = (ys[j][valid] - ys[i][valid]) / dx[valid]
    slope = float(np.median(slopes))
    intercept = float(np.median(ys - slope * xs))
    return RegressionResult(slope=slope, intercept=intercept)


def linear_regression(x: Sequence[float], y: Sequence[float]) -> RegressionResult:
    """Ordinary least squares; degenerate x gives a flat line at mean(y)."""
    n = min(len(x), len(y))
    if n == 0:
        return RegressionResult(slope=0.0, intercept=0.0)

    xs = np.asarray(x[:n], dtype=float)
    ys = np.asarray(y[:n], dtype=float)

    mean_x = float(np.mean(xs))
    mean_y = float(np.mean(ys))
    # centred sums; a constant y gives an exact zero slope
    dx = xs - mean_x
    dy = ys - mean_y if np.ptp(ys) else np.zeros_like(ys)

    denominator = float(np.sum(dx * dx))
    if denominator == 0 or not math.isfinite(denominator):
        return RegressionResult(slope=0.0, intercept=mean_y)

    slope = float(np.sum(dx * dy)) / denominator
    intercept = mean_y - slope * mean_x
    return RegressionResult(slope=slope, intercept=intercept)


def log_scale_regression(x: Sequence[float], y: Sequence[float]) -> LogRegressionResult:
    """
    OLS on (x, ln y); non-positive y are floored at ln(1e-10).

    growth_rate = exp(slope) - 1 per unit of x, with the exponent clamped
    to +-700 so it cannot overflow.
    """
    log_y = [math.log(v) if v > 0 else LOG_FLOOR for v in y]
    fit = linear_regression(x, log_y)
    clamped = max(-MAX_EXP_ARG, min(MAX_EXP_ARG, fit.slope))
    return LogRegressionResult(
        slope=fit.slope,
        intercept=fit.intercept,
        growth_rate=math.exp(clamped) - 1,
    )


def robust_trend_direction(values: Sequence[float], threshold: float = 0.05) -> TrendDirection:
    """Classify the smoothed Theil-Sen slope relative to the series median."""
    if len(values) < 2:
        return TrendDirection.STABLE

    smoothed = rolling_median_smooth(values)
    fit = theil_sen_regression(list(range(len(smoothed))), smoothed)
    center = _median(smoothed)
    if center == 0:
        return TrendDirection.STABLE

    relative_change = fit.slope / center
    if relative_change > threshold:
        return TrendDirection.INCREASING
    if relative_change < -threshold:
        return TrendDirection.DECREASING
    return TrendDirection.STABLE


def robust_trend_strength(values: Sequence[float]) -> float:
    """Growth rate of the smoothed positive values, scaled into [0, 1]."""
    smoothed = rolling_median_smooth(values)
    positive = [(i, v) for i, v in enumerate(smoothed) if v > 0]
    if len(positive) < 2:
        return 0.0

    fit = log_scale_regression([i for i, _ in positive], [v for _, v in positive])
    return min(abs(fit.growth_rate) / STRENGTH_GROWTH_SCALE, 1.0)


def robust_volatility(values: Sequence[float]) -> float:
    """Median absolute deviation of the raw series, times 1.4826."""
    if len(values) == 0:
        return 0.0
    data = np.asarray(values, dtype=float)
    mad = float(np.median(np.abs(data - np.median(data))))
    return mad * MAD_NORMAL_CONSISTENCY


def robust_trend_analysis(values: Sequence[float], threshold: float = 0.05) -> TrendAnalysis:
    """Direction, strength, volatility and Theil-Sen line for one series."""
    if len(values) < 2:
        return TrendAnalysis(
            direction=TrendDirection.STABLE,
            strength=0.0,
            slope=0.0,
            volatility=0.0,
            intercept=float(values[0]) if len(values) else 0.0,
        )

    smoothed = rolling_median_smooth(values)
    fit = theil_sen_regression(list(range(len(smoothed))), smoothed)

    return TrendAnalysis(
        direction=robust_trend_direction(values, threshold),
        strength=robust_trend_strength(values),
        slope=fit.slope,
        volatility=robust_volatility(values),
        intercept=fit.intercept,
    )
