"""
Tests for the Redis stream alert sink.
"""

import asyncio
import json
from unittest.mock import MagicMock, patch

import pytest
import redis

from engines.alert_publisher import DetectionPublisher
from engines.manipulation_detector import ManipulationDetector
from shared.config import EngineSettings, ManipulationDetectionConfig
from shared.detection_types import PricePoint

BASE_TS = 1_760_000_000_000


@pytest.fixture
def detection():
    detector = ManipulationDetector(clock=lambda: BASE_TS)
    history = [PricePoint(timestamp=BASE_TS - i, price=p) for i, p in enumerate([100.0, 101.0] * 5)]
    return asyncio.run(detector.analyze_price_feed("aave", "ETH", "ethereum", 110.0, history, []))


class TestDetectionPublisher:
    def test_publish(self, detection):
        client = MagicMock()
        client.xadd.return_value = "1760000000000-0"
        publisher = DetectionPublisher(client, stream="alerts:test", maxlen=500)

        assert publisher.publish(detection) == "1760000000000-0"

        stream, fields = client.xadd.call_args.args
        assert stream == "alerts:test"
        assert client.xadd.call_args.kwargs == {"maxlen": 500, "approximate": True}
        assert fields["detection_id"] == detection.id
        assert fields["severity"] == "critical"
        assert fields["severity_emoji"] == "🔴"
        assert fields["feeds"] == "aave-ETH-ethereum"
        assert fields["channels"] == "webhook"
        assert json.loads(fields["data"])["type"] == "statistical_anomaly"

    def test_redis_error(self, detection):
        client = MagicMock()
        client.xadd.side_effect = redis.ConnectionError("down")
        publisher = DetectionPublisher(client)

        assert publisher.publish(detection) is None

    def test_publish_many(self, detection):
        client = MagicMock()
        client.xadd.side_effect = ["1-0", redis.TimeoutError("slow"), "2-0"]
        publisher = DetectionPublisher(client)

        assert publisher.publish_many([detection] * 3) == 2

    def test_from_settings(self):
        settings = EngineSettings(
            environment="production",
            debug=False,
            log_level="INFO",
            redis_url="redis://cache:6379/2",
            alert_stream="alerts:prod",
            alert_stream_maxlen=10_000,
            detection_config_file=None,
            alert_min_severity=None,
            alert_cooldown_ms=None,
        )
        with patch("engines.alert_publisher.redis.from_url") as from_url:
            publisher = DetectionPublisher.from_settings(settings)

        from_url.assert_called_once_with("redis://cache:6379/2", decode_responses=True)
        assert publisher.stream == "alerts:prod"
        assert publisher.maxlen == 10_000

    def test_channels_from_detection_config(self, detection):
        settings = EngineSettings(
            environment="development",
            debug=False,
            log_level="INFO",
            redis_url="redis://localhost:6379/0",
            alert_stream="alerts:test",
            alert_stream_maxlen=100,
            detection_config_file=None,
            alert_min_severity=None,
            alert_cooldown_ms=None,
        )
        config = ManipulationDetectionConfig.from_dict(
            {"alerting": {"channels": ["slack", "pagerduty"]}}
        )
        with patch("engines.alert_publisher.redis.from_url") as from_url:
            publisher = DetectionPublisher.from_settings(settings, config)

        publisher.publish(detection)

        _, fields = from_url.return_value.xadd.call_args.args
        assert fields["channels"] == "slack,pagerduty"
