#!/usr/bin/env python3
# SPDX-License-Identifier: BUSL-1.1
"""
Alert Publisher - Redis stream sink for emitted detections

Flattens each ManipulationDetection into stream fields (scalars as strings,
the full record as JSON under `data`) and appends it with XADD. Delivery
formatting (webhooks, chat, email) is left to the stream's consumers, which
route on the `channels` field.
"""

import json
import logging
from typing import Iterable, Optional, Sequence

import redis

from shared.config import AlertingConfig, EngineSettings, ManipulationDetectionConfig
from shared.detection_types import ManipulationDetection
from shared.metrics import EngineMetrics
from shared.utils.emoji_severity_system import get_severity_emoji

logger = logging.getLogger(__name__)

ALERT_SCHEMA_VERSION = "2026-10-01"
DEFAULT_ALERT_STREAM = "oracle:manipulation_alerts"
DEFAULT_STREAM_MAXLEN = 10_000


class DetectionPublisher:
    """Append detections to a Redis stream"""

    def __init__(
        self,
        redis_client: redis.Redis,
        stream: str = DEFAULT_ALERT_STREAM,
        maxlen: int = DEFAULT_STREAM_MAXLEN,
        metrics: Optional[EngineMetrics] = None,
        channels: Optional[Sequence[str]] = None,
    ):
        self.redis_client = redis_client
        self.stream = stream
        self.maxlen = maxlen
        self.channels = list(channels) if channels is not None else AlertingConfig().channels
        self.metrics = metrics or EngineMetrics("alert_publisher")

    @classmethod
    def from_settings(
        cls, settings: EngineSettings, config: Optional[ManipulationDetectionConfig] = None
    ) -> "DetectionPublisher":
        """Connect using REDIS_URL / ALERT_STREAM settings and the alerting channels"""
        if config is None:
            config = settings.load_detection_config()
        client = redis.from_url(settings.redis_url, decode_responses=True)
        return cls(
            client,
            stream=settings.alert_stream,
            maxlen=settings.alert_stream_maxlen,
            channels=config.alerting.channels,
        )

    def build_fields(self, detection: ManipulationDetection) -> dict:
        """Stream entry fields for one detection"""
        return {
            "schema_v": ALERT_SCHEMA_VERSION,
            "type": "ORACLE_MANIPULATION_ALERT",
            "detection_id": detection.id,
            "manipulation_type": detection.type.value,
            "severity": detection.severity.value,
            "severity_emoji": get_severity_emoji(detection.severity),
            "confidence": f"{detection.confidence:.2f}",
            "feeds": ",".join(detection.affected_feeds),
            "channels": ",".join(self.channels),
            "timestamp": str(detection.timestamp),
            "data": json.dumps(detection.to_dict(), separators=(",", ":")),
        }

    def publish(self, detection: ManipulationDetection) -> Optional[str]:
        """
        Publish one detection.

        Returns:
            The stream entry id, or None if Redis rejected the write
        """
        try:
            entry_id = self.redis_client.xadd(
                self.stream,
                self.build_fields(detection),
                maxlen=self.maxlen,
                approximate=True,
            )
        except redis.RedisError as e:
            logger.error(f"Failed to publish detection {detection.id} to {self.stream}: {e}")
            self.metrics.record_publish(self.stream, "error")
            return None

        logger.debug(f"Published detection {detection.id} to {self.stream}")
        self.metrics.record_publish(self.stream, "ok")
        return entry_id

    def publish_many(self, detections: Iterable[ManipulationDetection]) -> int:
        """Publish each detection; returns how many were accepted"""
        return sum(1 for d in detections if self.publish(d) is not None)
