"""
Oracle Integrity Metrics Collection
Prometheus metrics for the manipulation detection engines
"""

import time

from prometheus_client import Counter, Gauge, Histogram

# === ANALYSIS METRICS ===
feed_analyses_total = Counter(
    "oracle_integrity_feed_analyses_total",
    "Feed analysis cycles executed",
    ["protocol", "chain", "component"],
)

feed_analysis_duration_seconds = Histogram(
    "oracle_integrity_feed_analysis_duration_seconds",
    "Feed analysis duration",
    ["component"],
)

tracked_feeds = Gauge(
    "oracle_integrity_tracked_feeds",
    "Feeds with price history held in memory",
    ["component"],
)

# === DETECTION METRICS ===
detector_signals_total = Counter(
    "oracle_integrity_detector_signals_total",
    "Individual pattern detectors that fired",
    ["detector", "component"],
)

detections_emitted_total = Counter(
    "oracle_integrity_detections_emitted_total",
    "Detections that passed gating",
    ["manipulation_type", "severity", "chain"],
)

detections_suppressed_total = Counter(
    "oracle_integrity_detections_suppressed_total",
    "Detections suppressed by gating",
    ["reason", "component"],
)

# === SINK METRICS ===
alert_publish_total = Counter(
    "oracle_integrity_alert_publish_total",
    "Detections published to the alert stream",
    ["stream", "result"],
)


class EngineMetrics:
    """Centralized metrics collection for a detection component"""

    def __init__(self, component_name: str = "manipulation_detector"):
        self.component_name = component_name

    def record_feed_analysis(self, protocol: str, chain: str):
        """Record one analysis cycle"""
        feed_analyses_total.labels(
            protocol=protocol, chain=chain, component=self.component_name
        ).inc()

    def record_detector_signal(self, detector: str):
        """Record a pattern detector firing"""
        detector_signals_total.labels(
            detector=detector, component=self.component_name
        ).inc()

    def record_detection(self, manipulation_type: str, severity: str, chain: str):
        """Record an emitted detection"""
        detections_emitted_total.labels(
            manipulation_type=manipulation_type, severity=severity, chain=chain
        ).inc()

    def record_suppressed(self, reason: str):
        """Record a detection suppressed by cooldown or severity gating"""
        detections_suppressed_total.labels(
            reason=reason, component=self.component_name
        ).inc()

    def record_publish(self, stream: str, result: str):
        """Record an alert stream publish attempt"""
        alert_publish_total.labels(stream=stream, result=result).inc()

    def update_tracked_feeds(self, count: int):
        tracked_feeds.labels(component=self.component_name).set(count)

    # === CONTEXT MANAGERS FOR AUTOMATIC TRACKING ===
    def time_analysis(self):
        """Context manager for timing one analysis cycle"""

        class AnalysisTimer:
            def __init__(self, metrics):
                self.metrics = metrics
                self.start_time = None

            def __enter__(self):
                self.start_time = time.perf_counter()
                return self

            def __exit__(self, exc_type, exc_val, exc_tb):
                duration = time.perf_counter() - self.start_time
                feed_analysis_duration_seconds.labels(
                    component=self.metrics.component_name
                ).observe(duration)

        return AnalysisTimer(self)
