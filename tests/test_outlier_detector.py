"""
Tests for deviation series outlier detection.
"""

import pytest

from engines.outlier_detector import (
    detect_by_iqr,
    detect_by_threshold,
    detect_by_zscore,
    detect_outliers,
)
from shared.config import ConfigurationError, OutlierDetectionConfig


class TestThreshold:
    def test_strictly_above(self):
        assert detect_by_threshold([0.001, 0.02, 0.005, 0.03], 0.01) == [1, 3]

    def test_equal_is_not_outlier(self):
        assert detect_by_threshold([0.01, 0.01], 0.01) == []


class TestIQR:
    def test_single_spike(self):
        assert detect_by_iqr([1, 1, 1, 1, 1, 1, 1, 10]) == [7]

    def test_needs_four_points(self):
        assert detect_by_iqr([1, 1, 100]) == []

    def test_low_outlier(self):
        assert detect_by_iqr([-50, 5, 5, 5, 5, 5, 5, 5]) == [0]


class TestZScore:
    def test_single_spike(self):
        assert detect_by_zscore([0.0] * 19 + [10.0]) == [19]

    def test_constant_series(self):
        assert detect_by_zscore([0.5] * 10) == []

    def test_needs_four_points(self):
        assert detect_by_zscore([0, 0, 100]) == []


class TestDispatch:
    def test_short_series_uses_threshold_only(self):
        config = OutlierDetectionConfig(method="both", threshold=0.01, min_data_points=5)
        assert detect_outliers([0.02, 0.001, 0.5], config) == [0, 2]

    def test_short_series_statistical_method_returns_nothing(self):
        config = OutlierDetectionConfig(method="iqr", min_data_points=5)
        assert detect_outliers([0.02, 0.001, 0.5], config) == []

    def test_both_is_threshold_union_iqr(self):
        config = OutlierDetectionConfig(method="both", threshold=0.01)
        deviations = [0.001] * 6 + [0.02, 0.5]
        # threshold flags 6 and 7, IQR flags only 7
        assert detect_outliers(deviations, config) == [6, 7]

    def test_zscore_method(self):
        config = OutlierDetectionConfig(method="zscore", zscore_threshold=3.0)
        assert detect_outliers([0.0] * 19 + [10.0], config) == [19]

    def test_unknown_method(self):
        with pytest.raises(ConfigurationError):
            detect_outliers([0.1] * 10, OutlierDetectionConfig(method="bogus"))
