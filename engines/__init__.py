"""
Oracle Integrity Engines
Manipulation detection, cross-oracle deviation analytics and alert publishing
"""

from .deviation_analytics import (
    DeviationAnalyticsConfig,
    PriceDeviationAnalytics,
    build_deviation_point,
)
from .manipulation_detector import ManipulationDetector, create_detector

__all__ = [
    "DeviationAnalyticsConfig",
    "ManipulationDetector",
    "PriceDeviationAnalytics",
    "build_deviation_point",
    "create_detector",
]
