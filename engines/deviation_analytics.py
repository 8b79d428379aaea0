#!/usr/bin/env python3
# SPDX-License-Identifier: BUSL-1.1
"""
Deviation Analytics - CROSS-ORACLE DEVIATION REPORTING

Works on series of cross-oracle deviation points (one point = one instant,
one symbol, every protocol's price). The caller owns storage and passes
series in; nothing here queries a database.

- Per-symbol robust trend (Theil-Sen on rolling-median smoothed deviations)
- Outlier points (threshold / IQR / Z-score, configurable)
- Symbol ranking by average deviation with a stability score
- Aggregate report across symbols
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from engines.consensus_price import calculate_consensus_price, calculate_max_deviation
from engines.deviation_classifier import calculate_anomaly_score, generate_recommendation
from engines.outlier_detector import detect_outliers
from engines.trend_analyzer import robust_trend_analysis
from shared.config import ConfigurationError, DeviationThresholds, OutlierDetectionConfig
from shared.detection_types import TrendDirection

logger = logging.getLogger(__name__)

MAX_REPORT_ANOMALIES = 50
INSUFFICIENT_DATA = "Insufficient data for analysis"


@dataclass(frozen=True)
class PriceDeviationPoint:
    """Cross-protocol snapshot for one symbol; deviations are fractions"""

    timestamp: int
    symbol: str
    protocols: List[str]
    prices: Dict[str, float]
    avg_price: float
    median_price: float
    max_deviation: float
    max_deviation_percent: float
    outlier_protocols: List[str]


@dataclass(frozen=True)
class DeviationTrend:
    symbol: str
    trend_direction: TrendDirection
    trend_strength: float
    avg_deviation: float
    max_deviation: float
    volatility: float
    anomaly_score: float
    recommendation: str


@dataclass(frozen=True)
class SymbolComparison:
    symbol: str
    rank: int
    avg_deviation: float
    stability: float


@dataclass(frozen=True)
class DeviationReport:
    generated_at: int
    period_start: Optional[int]
    period_end: Optional[int]
    total_symbols: int
    symbols_with_high_deviation: int
    avg_deviation_across_all: float
    most_volatile_symbol: str
    trends: List[DeviationTrend]
    anomalies: List[PriceDeviationPoint]

    def to_dict(self) -> Dict:
        data = asdict(self)
        for trend in data["trends"]:
            trend["trend_direction"] = TrendDirection(trend["trend_direction"]).value
        return data


@dataclass
class DeviationAnalyticsConfig:
    deviation_threshold: float = 0.01
    min_data_points: int = 10
    trend_threshold: float = 0.05
    outlier_detection: OutlierDetectionConfig = field(default_factory=OutlierDetectionConfig)
    thresholds: DeviationThresholds = field(default_factory=DeviationThresholds)

    def validate(self) -> None:
        if self.deviation_threshold < 0 or self.trend_threshold < 0:
            raise ConfigurationError("Deviation analytics thresholds must be non-negative")
        if self.min_data_points < 0:
            raise ConfigurationError("min_data_points must be >= 0")
        self.outlier_detection.validate()
        self.thresholds.validate()


def build_deviation_point(
    symbol: str,
    timestamp: int,
    protocol_prices: Mapping[str, float],
    method: str = "median",
    outlier_threshold: float = 0.01,
) -> PriceDeviationPoint:
    """
    Summarize one instant of per-protocol prices.

    Protocols deviating from the consensus by more than `outlier_threshold`
    (fraction) are listed as outliers.
    """
    if not protocol_prices:
        raise ValueError(f"No protocol prices for {symbol}")

    protocols = list(protocol_prices)
    prices = [protocol_prices[p] for p in protocols]
    consensus = calculate_consensus_price(prices, method)
    worst = calculate_max_deviation(protocol_prices, consensus)

    outliers = []
    if consensus:
        outliers = [
            p for p in protocols if abs(protocol_prices[p] - consensus) / abs(consensus) > outlier_threshold
        ]

    return PriceDeviationPoint(
        timestamp=timestamp,
        symbol=symbol,
        protocols=protocols,
        prices=dict(protocol_prices),
        avg_price=calculate_consensus_price(prices, "mean"),
        median_price=calculate_consensus_price(prices, "median"),
        max_deviation=worst.deviation if worst else 0.0,
        max_deviation_percent=worst.deviation_percent if worst else 0.0,
        outlier_protocols=outliers,
    )


class PriceDeviationAnalytics:
    """Trend, anomaly and ranking analysis over deviation series"""

    def __init__(
        self,
        config: Optional[DeviationAnalyticsConfig] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.config = config or DeviationAnalyticsConfig()
        self.config.validate()
        self._clock = clock or (lambda: int(time.time() * 1000))

    @staticmethod
    def _ordered(points: Sequence[PriceDeviationPoint]) -> List[PriceDeviationPoint]:
        return sorted(points, key=lambda p: p.timestamp)

    def _outlier_indices(self, deviations: Sequence[float]) -> List[int]:
        return detect_outliers(deviations, self.config.outlier_detection)

    def analyze_deviation_trend(
        self, symbol: str, points: Sequence[PriceDeviationPoint]
    ) -> DeviationTrend:
        """Robust trend of one symbol's max-deviation series"""
        if len(points) < self.config.min_data_points:
            return DeviationTrend(
                symbol=symbol,
                trend_direction=TrendDirection.STABLE,
                trend_strength=0.0,
                avg_deviation=0.0,
                max_deviation=0.0,
                volatility=0.0,
                anomaly_score=0.0,
                recommendation=INSUFFICIENT_DATA,
            )

        deviations = [p.max_deviation_percent for p in self._ordered(points)]
        analysis = robust_trend_analysis(deviations, self.config.trend_threshold)

        # Theil-Sen intercept as a robust central estimate of the deviation
        avg_deviation = analysis.intercept
        anomaly_score = calculate_anomaly_score(
            deviations, self._outlier_indices(deviations), self.config.deviation_threshold
        )

        return DeviationTrend(
            symbol=symbol,
            trend_direction=analysis.direction,
            trend_strength=analysis.strength,
            avg_deviation=avg_deviation,
            max_deviation=max(deviations),
            volatility=analysis.volatility,
            anomaly_score=anomaly_score,
            recommendation=generate_recommendation(
                analysis.direction,
                analysis.strength,
                avg_deviation,
                anomaly_score,
                self.config.thresholds,
            ),
        )

    def detect_anomalies(self, points: Sequence[PriceDeviationPoint]) -> List[PriceDeviationPoint]:
        """Outlier points of a series, newest first"""
        if not points:
            return []

        ordered = self._ordered(points)
        indices = set(self._outlier_indices([p.max_deviation_percent for p in ordered]))
        anomalies = [p for i, p in enumerate(ordered) if i in indices]
        anomalies.sort(key=lambda p: p.timestamp, reverse=True)
        return anomalies

    def compare_symbols(
        self, series_by_symbol: Mapping[str, Sequence[PriceDeviationPoint]]
    ) -> List[SymbolComparison]:
        """Rank symbols by average deviation, lowest (best) first"""
        trends = [
            self.analyze_deviation_trend(symbol, points)
            for symbol, points in series_by_symbol.items()
        ]
        trends.sort(key=lambda t: t.avg_deviation)
        return [
            SymbolComparison(
                symbol=t.symbol,
                rank=rank,
                avg_deviation=t.avg_deviation,
                stability=1 / (1 + t.volatility),
            )
            for rank, t in enumerate(trends, start=1)
        ]

    def generate_report(
        self, series_by_symbol: Mapping[str, Sequence[PriceDeviationPoint]]
    ) -> DeviationReport:
        started = time.perf_counter()

        trends: List[DeviationTrend] = []
        anomalies: List[PriceDeviationPoint] = []
        high_deviation_count = 0
        max_volatility = 0.0
        most_volatile_symbol = ""
        timestamps: List[int] = []

        for symbol, points in series_by_symbol.items():
            trend = self.analyze_deviation_trend(symbol, points)
            trends.append(trend)
            anomalies.extend(self.detect_anomalies(points))
            timestamps.extend(p.timestamp for p in points)

            if trend.avg_deviation > self.config.deviation_threshold:
                high_deviation_count += 1
            if trend.volatility > max_volatility:
                max_volatility = trend.volatility
                most_volatile_symbol = symbol

        avg_across_all = sum(t.avg_deviation for t in trends) / len(trends) if trends else 0.0

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"Deviation report generated: {len(trends)} symbols, "
            f"{len(anomalies)} anomalies in {elapsed_ms:.1f}ms"
        )

        return DeviationReport(
            generated_at=self._clock(),
            period_start=min(timestamps) if timestamps else None,
            period_end=max(timestamps) if timestamps else None,
            total_symbols=len(trends),
            symbols_with_high_deviation=high_deviation_count,
            avg_deviation_across_all=avg_across_all,
            most_volatile_symbol=most_volatile_symbol,
            trends=trends,
            anomalies=anomalies[:MAX_REPORT_ANOMALIES],
        )

    def get_config(self) -> DeviationAnalyticsConfig:
        return self.config
