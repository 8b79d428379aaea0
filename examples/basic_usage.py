#!/usr/bin/env python3
"""
Oracle Integrity Basic Usage Example

This example feeds a price spike into the manipulation detector and prints
the resulting detection, then compares three oracle sources.
"""

import asyncio
import sys
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from engines.manipulation_detector import create_detector
from shared.config import get_config_manager
from shared.detection_types import PricePoint
from shared.logging_setup import setup_logging


async def main():
    """Detect a statistical price anomaly on one feed."""

    settings = get_config_manager().get_settings()
    setup_logging("basic_usage", root_dir=None, level=settings.log_level)

    detector = create_detector(get_config_manager().get_detection_config())

    now = int(time.time() * 1000)
    history = [
        PricePoint(timestamp=now - (20 - i) * 60_000, price=2000.0 + (i % 3), source="chainlink")
        for i in range(20)
    ]

    print("Analyzing aave ETH/USD on ethereum")
    print("-" * 50)

    detection = await detector.analyze_price_feed(
        "aave", "ETH/USD", "ethereum", 2300.0, history, []
    )

    if detection is None:
        print("No manipulation detected")
    else:
        print(f"Type: {detection.type.value}")
        print(f"Severity: {detection.severity.value}")
        print(f"Confidence: {detection.confidence:.1f}")
        print(f"Description: {detection.details.description}")
        for action in detection.recommended_actions:
            print(f"  [{action.priority}] {action.action}: {action.description}")

    validation = detector.validate_sources({"chainlink": 2001.0, "pyth": 2002.5, "band": 2150.0})
    print("-" * 50)
    print(f"Consensus: {validation.consensus_price:.2f}")
    print(f"Consistent: {validation.is_consistent}")
    print(f"Outliers: {validation.outlier_protocols}")


if __name__ == "__main__":
    asyncio.run(main())
