"""
Tests for robust trend estimation.
"""

import math

import pytest

from engines.trend_analyzer import (
    linear_regression,
    log_scale_regression,
    robust_trend_analysis,
    robust_trend_direction,
    robust_trend_strength,
    robust_volatility,
    rolling_median_smooth,
    theil_sen_regression,
)
from shared.detection_types import TrendDirection


class TestSmoothing:
    def test_edges_are_truncated(self):
        assert rolling_median_smooth([1, 100, 3, 4, 5]) == [50.5, 3, 4, 4, 4.5]

    def test_even_window_is_widened(self):
        assert rolling_median_smooth([1, 100, 3, 4, 5], window_size=2) == rolling_median_smooth(
            [1, 100, 3, 4, 5], window_size=3
        )


class TestRegression:
    def test_theil_sen_ignores_single_outlier(self):
        x = list(range(10))
        y = [2 * i + 1 for i in x]
        y[9] = 100

        robust = theil_sen_regression(x, y)
        ols = linear_regression(x, y)

        assert robust.slope == pytest.approx(2)
        assert robust.intercept == pytest.approx(1)
        assert ols.slope > 4

    def test_theil_sen_degenerate(self):
        assert theil_sen_regression([1], [1]).slope == 0
        flat = theil_sen_regression([2, 2, 2], [1, 5, 9])
        assert (flat.slope, flat.intercept) == (0, 0)

    def test_linear_degenerate_x(self):
        fit = linear_regression([1, 1, 1], [1, 2, 3])
        assert fit.slope == 0
        assert fit.intercept == pytest.approx(2)

    def test_linear_constant_y_is_exactly_flat(self):
        fit = linear_regression(list(range(10)), [math.log(5.0)] * 10)
        assert fit.slope == 0
        assert log_scale_regression(list(range(25)), [0.1] * 25).growth_rate == 0

    def test_linear_large_offset_x(self):
        x = [1_760_000_000 + i for i in range(10)]
        fit = linear_regression(x, [3 * i + 2 for i in range(10)])
        assert fit.slope == pytest.approx(3)

    def test_log_scale_growth(self):
        fit = log_scale_regression([0, 1, 2, 3, 4], [1, 2, 4, 8, 16])
        assert fit.slope == pytest.approx(math.log(2))
        assert fit.growth_rate == pytest.approx(1.0)

    def test_log_scale_non_positive_values(self):
        fit = log_scale_regression([0, 1, 2], [0, -1, 5])
        assert math.isfinite(fit.growth_rate)


class TestTrend:
    def test_direction(self):
        rising = [float(i) for i in range(1, 11)]
        assert robust_trend_direction(rising) == TrendDirection.INCREASING
        assert robust_trend_direction(rising[::-1]) == TrendDirection.DECREASING
        assert robust_trend_direction([5.0] * 10) == TrendDirection.STABLE

    def test_direction_zero_median(self):
        assert robust_trend_direction([0.0] * 5) == TrendDirection.STABLE

    def test_strength_bounds(self):
        assert robust_trend_strength([5.0] * 10) == 0
        assert 0 <= robust_trend_strength([float(i) for i in range(1, 11)]) <= 1

    def test_volatility_is_scaled_mad(self):
        assert robust_volatility([1, 2, 3, 4, 100]) == pytest.approx(1.4826)
        assert robust_volatility([]) == 0

    def test_analysis_short_series(self):
        single = robust_trend_analysis([7.0])
        assert single.direction == TrendDirection.STABLE
        assert single.intercept == 7.0
        assert robust_trend_analysis([]).intercept == 0

    def test_analysis_rising_series(self):
        result = robust_trend_analysis([float(i) for i in range(1, 11)])
        assert result.direction == TrendDirection.INCREASING
        assert result.slope > 0
