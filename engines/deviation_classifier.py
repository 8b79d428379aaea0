#!/usr/bin/env python3
# SPDX-License-Identifier: BUSL-1.1
"""
deviation_classifier.py - Deviation Severity, Anomaly Score, Recommendations

Turns raw deviation numbers into the tiers and text operators act on.
"""

from typing import Optional, Sequence, Union

from shared.config import DeviationThresholds
from shared.detection_types import TrendDirection
from shared.utils.emoji_severity_system import SeverityLevel


def classify_deviation(deviation_percent: float, thresholds: DeviationThresholds) -> SeverityLevel:
    """
    Severity tier of a fractional deviation (0.01 = 1%).

    Tiers are checked from critical down; the first cutoff reached wins.
    """
    if deviation_percent >= thresholds.critical:
        return SeverityLevel.CRITICAL
    if deviation_percent >= thresholds.high:
        return SeverityLevel.HIGH
    if deviation_percent >= thresholds.medium:
        return SeverityLevel.MEDIUM
    return SeverityLevel.LOW


def calculate_anomaly_score(
    deviations: Sequence[float], outlier_indices: Sequence[int], threshold: float
) -> float:
    """
    Share of outliers and of above-threshold points, averaged, in [0, 1].
    """
    n = len(deviations)
    if n == 0:
        return 0.0

    outlier_ratio = len(outlier_indices) / n
    high_deviation_ratio = sum(1 for d in deviations if d > threshold) / n
    score = (outlier_ratio + high_deviation_ratio) / 2
    return max(0.0, min(score, 1.0))


def generate_recommendation(
    trend_direction: Union[str, TrendDirection],
    trend_strength: float,
    avg_deviation: float,
    anomaly_score: float,
    thresholds: Optional[DeviationThresholds] = None,
) -> str:
    """Operator-facing advice; one sentence per rule that fires."""
    thresholds = thresholds or DeviationThresholds()
    parts = []

    if anomaly_score > 0.7:
        parts.append("High anomaly detected. Investigate data sources immediately.")
    elif anomaly_score > 0.4:
        parts.append("Moderate anomalies observed. Monitor closely.")

    if TrendDirection(trend_direction) == TrendDirection.INCREASING and trend_strength > 0.5:
        parts.append("Deviation trend is increasing significantly.")

    tier = classify_deviation(avg_deviation, thresholds)
    if tier == SeverityLevel.CRITICAL:
        parts.append(f"Average deviation is very high (>{thresholds.critical:.0%}).")
    elif tier in (SeverityLevel.HIGH, SeverityLevel.MEDIUM):
        parts.append(f"Average deviation is elevated (>{thresholds.medium:.0%}).")

    if not parts:
        return "Price deviation is within normal ranges."

    return " ".join(parts)
