#!/usr/bin/env python3
# SPDX-License-Identifier: BUSL-1.1
"""
outlier_detector.py - Deviation Series Outlier Detection

Classifies which points of a cross-oracle deviation series are statistical
outliers. All functions are pure and return ascending index lists.

Methods:
- threshold: deviation strictly above a fixed cutoff
- iqr: outside [Q1 - k*IQR, Q3 + k*IQR]
- zscore: more than z population standard deviations from the mean
- both: threshold and IQR combined (Z-score is not part of 'both')
"""

import logging
import math
from typing import List, Sequence

import numpy as np

from shared.config import OUTLIER_METHODS, ConfigurationError, OutlierDetectionConfig

logger = logging.getLogger(__name__)

MIN_STATISTICAL_POINTS = 4


def detect_by_threshold(deviations: Sequence[float], threshold: float) -> List[int]:
    """Indices whose deviation is strictly above `threshold`."""
    return [i for i, value in enumerate(deviations) if value > threshold]


def detect_by_iqr(deviations: Sequence[float], multiplier: float = 1.5) -> List[int]:
    """
    Interquartile-range outliers.

    Quartiles are taken by position in the sorted series
    (Q1 = s[floor(n*0.25)], Q3 = s[floor(n*0.75)]), not interpolated.
    """
    n = len(deviations)
    if n < MIN_STATISTICAL_POINTS:
        return []

    ordered = sorted(deviations)
    q1 = ordered[math.floor(n * 0.25)]
    q3 = ordered[math.floor(n * 0.75)]
    iqr = q3 - q1
    lower = q1 - multiplier * iqr
    upper = q3 + multiplier * iqr

    return [i for i, value in enumerate(deviations) if value < lower or value > upper]


def detect_by_zscore(deviations: Sequence[float], z_threshold: float = 3.0) -> List[int]:
    """Z-score outliers against the population standard deviation."""
    if len(deviations) < MIN_STATISTICAL_POINTS:
        return []

    values = np.asarray(deviations, dtype=float)
    mean = float(np.mean(values))
    std = float(np.std(values))
    if std == 0:
        return []

    z_scores = np.abs(values - mean) / std
    return [int(i) for i in np.flatnonzero(z_scores > z_threshold)]


def detect_outliers(deviations: Sequence[float], config: OutlierDetectionConfig) -> List[int]:
    """
    Dispatch on `config.method` and return sorted, de-duplicated indices.

    Short series (fewer than `config.min_data_points`) only get the
    threshold rule, and only when the method includes it.
    """
    method = config.method
    if method not in OUTLIER_METHODS:
        raise ConfigurationError(f"Unknown outlier method: {method!r}")

    if len(deviations) < config.min_data_points:
        logger.debug(
            f"Only {len(deviations)} deviation points (< {config.min_data_points}); "
            "threshold-only outlier check"
        )
        if method in ("threshold", "both"):
            return detect_by_threshold(deviations, config.threshold)
        return []

    if method == "threshold":
        indices = detect_by_threshold(deviations, config.threshold)
    elif method == "iqr":
        indices = detect_by_iqr(deviations, config.iqr_multiplier)
    elif method == "zscore":
        indices = detect_by_zscore(deviations, config.zscore_threshold)
    else:
        indices = detect_by_threshold(deviations, config.threshold)
        indices += detect_by_iqr(deviations, config.iqr_multiplier)

    return sorted(set(indices))
