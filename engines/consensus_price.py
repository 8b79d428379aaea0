#!/usr/bin/env python3
# SPDX-License-Identifier: BUSL-1.1
"""
consensus_price.py - Multi-Oracle Consensus Pricing

Combines per-source prices into one reference price and finds the source
that strays furthest from it.
"""

import logging
from typing import Mapping, Optional, Sequence

from shared.config import CONSENSUS_METHODS, ConfigurationError
from shared.detection_types import MaxDeviation

logger = logging.getLogger(__name__)


def _median(values: Sequence[float]) -> float:
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def calculate_consensus_price(
    prices: Sequence[float],
    method: str = "median",
    weights: Optional[Sequence[float]] = None,
) -> float:
    """
    Reference price from multiple sources.

    Args:
        prices: Source prices
        method: 'median', 'mean' or 'weighted'
        weights: Per-price weights for 'weighted'; mismatched length or a
            non-positive sum falls back to the mean

    Returns:
        Consensus price (0 for no prices)
    """
    if method not in CONSENSUS_METHODS:
        raise ConfigurationError(f"Unknown consensus method: {method!r}")

    if len(prices) == 0:
        return 0.0
    if len(prices) == 1:
        return float(prices[0])

    if method == "median":
        return float(_median(prices))

    if method == "weighted":
        if weights is not None and len(weights) == len(prices):
            total_weight = sum(weights)
            if total_weight > 0:
                return sum(p * w for p, w in zip(prices, weights)) / total_weight
        logger.debug("Unusable weights for weighted consensus; using mean")

    return float(_mean(prices))


def calculate_max_deviation(
    protocol_prices: Mapping[str, float], consensus_price: float
) -> Optional[MaxDeviation]:
    """
    The protocol whose price deviates most from the consensus.

    Returns:
        MaxDeviation with the absolute deviation and the fractional
        deviation (0.01 = 1%), or None for no prices / zero consensus
    """
    if not protocol_prices or consensus_price == 0:
        return None

    worst: Optional[MaxDeviation] = None
    for protocol, price in protocol_prices.items():
        deviation = abs(price - consensus_price)
        deviation_percent = deviation / abs(consensus_price)
        if worst is None or deviation_percent > worst.deviation_percent:
            worst = MaxDeviation(
                protocol=protocol,
                deviation=deviation,
                deviation_percent=deviation_percent,
            )

    return worst
