"""
Tests for cross-oracle deviation analytics.
"""

import pytest

from engines.deviation_analytics import (
    INSUFFICIENT_DATA,
    DeviationAnalyticsConfig,
    PriceDeviationAnalytics,
    PriceDeviationPoint,
    build_deviation_point,
)
from shared.config import ConfigurationError, OutlierDetectionConfig
from shared.detection_types import TrendDirection

BASE_TS = 1_760_000_000_000
MINUTE = 60_000


def series(symbol, deviations, start=BASE_TS):
    return [
        PriceDeviationPoint(
            timestamp=start + i * MINUTE,
            symbol=symbol,
            protocols=["chainlink", "pyth"],
            prices={"chainlink": 100.0, "pyth": 100.0 * (1 + d)},
            avg_price=100.0,
            median_price=100.0,
            max_deviation=100.0 * d,
            max_deviation_percent=d,
            outlier_protocols=[],
        )
        for i, d in enumerate(deviations)
    ]


@pytest.fixture
def analytics():
    return PriceDeviationAnalytics(clock=lambda: 42)


class TestBuildDeviationPoint:
    def test_summary(self):
        point = build_deviation_point(
            "ETH", BASE_TS, {"chainlink": 100.0, "pyth": 100.5, "band": 103.0}
        )
        assert point.median_price == 100.5
        assert point.avg_price == pytest.approx(101.1667, rel=1e-4)
        assert point.max_deviation == pytest.approx(2.5)
        assert point.max_deviation_percent == pytest.approx(2.5 / 100.5)
        assert point.outlier_protocols == ["band"]
        assert point.protocols == ["chainlink", "pyth", "band"]

    def test_empty(self):
        with pytest.raises(ValueError):
            build_deviation_point("ETH", BASE_TS, {})


class TestTrend:
    def test_insufficient_data(self, analytics):
        trend = analytics.analyze_deviation_trend("ETH", series("ETH", [0.01] * 5))
        assert trend.trend_direction == TrendDirection.STABLE
        assert trend.anomaly_score == 0
        assert trend.recommendation == INSUFFICIENT_DATA

    def test_flat_series(self, analytics):
        trend = analytics.analyze_deviation_trend("ETH", series("ETH", [0.002] * 12))
        assert trend.trend_direction == TrendDirection.STABLE
        assert trend.avg_deviation == pytest.approx(0.002)
        assert trend.volatility == 0
        assert trend.anomaly_score == 0
        assert trend.recommendation == "Price deviation is within normal ranges."

    def test_rising_series(self, analytics):
        points = series("ETH", [0.01 * (i + 1) for i in range(12)])
        trend = analytics.analyze_deviation_trend("ETH", list(reversed(points)))

        assert trend.trend_direction == TrendDirection.INCREASING
        assert trend.max_deviation == pytest.approx(0.12)
        assert "Deviation trend is increasing significantly." in trend.recommendation


class TestAnomalies:
    def test_newest_first(self, analytics):
        deviations = [0.001] * 12
        deviations[3] = 0.5
        deviations[8] = 0.5
        points = series("ETH", deviations)

        anomalies = analytics.detect_anomalies(points)

        assert [p.timestamp for p in anomalies] == [points[8].timestamp, points[3].timestamp]

    def test_empty(self, analytics):
        assert analytics.detect_anomalies([]) == []


class TestComparisonAndReport:
    def test_compare_symbols(self, analytics):
        ranking = analytics.compare_symbols(
            {"BTC": series("BTC", [0.02] * 12), "ETH": series("ETH", [0.001] * 12)}
        )
        assert [(r.symbol, r.rank) for r in ranking] == [("ETH", 1), ("BTC", 2)]
        assert ranking[0].stability == 1

    def test_report(self, analytics):
        report = analytics.generate_report(
            {
                "ETH": series("ETH", [0.001] * 12),
                "BTC": series("BTC", [0.02, 0.03] * 6, start=BASE_TS + MINUTE),
            }
        )

        assert report.generated_at == 42
        assert report.total_symbols == 2
        assert report.symbols_with_high_deviation == 1
        assert report.most_volatile_symbol == "BTC"
        assert report.period_start == BASE_TS
        assert report.period_end == BASE_TS + 12 * MINUTE
        assert report.to_dict()["trends"][0]["trend_direction"] == "stable"

    def test_report_caps_anomalies(self):
        config = DeviationAnalyticsConfig(outlier_detection=OutlierDetectionConfig(method="threshold"))
        analytics = PriceDeviationAnalytics(config)

        report = analytics.generate_report({"ETH": series("ETH", [0.02] * 60)})

        assert len(report.anomalies) == 50

    def test_empty_report(self, analytics):
        report = analytics.generate_report({})
        assert report.total_symbols == 0
        assert report.avg_deviation_across_all == 0
        assert report.period_start is None

    def test_invalid_config(self):
        with pytest.raises(ConfigurationError):
            PriceDeviationAnalytics(DeviationAnalyticsConfig(min_data_points=-1))
