#!/usr/bin/env python3
# SPDX-License-Identifier: BUSL-1.1
"""
Manipulation Detector - PRICE INTEGRITY ENGINE
Flags oracle price feeds that show signs of manipulation

ATTACK PATTERNS DETECTED:
1. Statistical anomaly (current price far from the feed's own history)
2. Flash loan activity (lending-pool flash-loan selectors in recent call data)
3. Sandwich attacks (large front/back transactions around a smaller victim)
4. Liquidity drains (pool depth collapsing against its recent average)

PIPELINE:
- Per-feed bounded price history (FIFO, oldest evicted first)
- Four independent detectors, each abstaining on thin or degenerate data
- Merge into one ranked detection (highest confidence wins)
- Severity and cooldown gating: at most one detection per feed per window
- Append-only detection ledger with history queries and aggregate metrics

The detector performs no I/O. Price polling, transaction decoding, alert
delivery and persistence are the caller's responsibility.
"""

import asyncio
import copy
import logging
import math
import time
import uuid
from collections import Counter, defaultdict, deque
from dataclasses import replace
from datetime import datetime, timezone
from typing import (
    Any,
    Callable,
    Deque,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Union,
)

import numpy as np

from engines.consensus_price import calculate_consensus_price, calculate_max_deviation
from engines.signature_detectors import (
    SignatureRegistry,
    default_signature_registry,
    describe_method,
)
from shared.config import ManipulationDetectionConfig
from shared.detection_types import (
    DetectionDetails,
    DetectionEvidence,
    DetectionImpact,
    DetectionMetrics,
    DetectionStatus,
    DetectorSignal,
    FeedObservation,
    ManipulationDetection,
    ManipulationType,
    PricePoint,
    RecommendedAction,
    SourceValidation,
    SuspiciousTransaction,
    TransactionRecord,
)
from shared.metrics import EngineMetrics
from shared.utils.emoji_severity_system import (
    SeverityLevel,
    format_with_severity_emoji,
    highest_severity,
    parse_severity,
    severity_from_confidence,
    severity_rank,
)

logger = logging.getLogger(__name__)

RELEVANCE_VALUE_SCALE = 10_000.0
TOP_FEEDS_LIMIT = 10


def _now_ms() -> int:
    return int(time.time() * 1000)


def _clamp_confidence(confidence: float) -> float:
    return max(0.0, min(float(confidence), 100.0))


class ManipulationDetector:
    """
    Price Integrity & Manipulation Detection Engine

    Owns three pieces of mutable state: per-feed price history, the detection
    ledger and the per-feed last-alert time. Analysis of one feed key is
    serialized with an asyncio lock; different feeds do not block each other.
    """

    def __init__(
        self,
        config: Union[ManipulationDetectionConfig, Mapping[str, Any], None] = None,
        *,
        clock: Optional[Callable[[], int]] = None,
        signature_registry: Optional[SignatureRegistry] = None,
        metrics: Optional[EngineMetrics] = None,
    ):
        if config is None:
            config = ManipulationDetectionConfig()
        elif isinstance(config, Mapping):
            config = ManipulationDetectionConfig.from_dict(config)
        else:
            config.validate()

        self.config = config
        self._clock = clock or _now_ms
        self.signature_registry = signature_registry or default_signature_registry()
        self.metrics = metrics or EngineMetrics("manipulation_detector")

        # Feed key -> bounded price history
        self.price_history: Dict[str, Deque[PricePoint]] = {}
        # Append-only ledger of emitted detections
        self.detection_history: List[ManipulationDetection] = []
        # Detection id -> reviewed copy carrying the latest status
        self.status_overrides: Dict[str, ManipulationDetection] = {}
        # Feed key -> epoch ms of the last emitted detection
        self.last_alert_time: Dict[str, int] = {}
        # Feed key -> epoch ms of the last analysis
        self.last_seen: Dict[str, int] = {}

        self._feed_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

        logger.info(
            f"Manipulation Detector initialized (rules={','.join(self.config.enabled_rules)}, "
            f"min_severity={self.config.alerting.min_severity}, "
            f"cooldown={self.config.alerting.cooldown_period}ms)"
        )

    @staticmethod
    def feed_key(protocol: str, symbol: str, chain: str) -> str:
        return f"{protocol}-{symbol}-{chain}"

    # ============================================================================
    # Analysis entry points
    # ============================================================================

    async def analyze_price_feed(
        self,
        protocol: str,
        symbol: str,
        chain: str,
        current_price: float,
        historical_data: Sequence[PricePoint],
        recent_transactions: Sequence[TransactionRecord],
    ) -> Optional[ManipulationDetection]:
        """
        Analyze one feed observation and return a detection if one is emitted

        Returns:
            The emitted ManipulationDetection, or None when no detector fired
            or the result was suppressed by cooldown / severity gating
        """
        feed_key = self.feed_key(protocol, symbol, chain)

        async with self._feed_locks[feed_key]:
            with self.metrics.time_analysis():
                return self._analyze_feed(
                    feed_key,
                    protocol,
                    symbol,
                    chain,
                    current_price,
                    historical_data,
                    recent_transactions,
                )

    async def analyze_multiple_feeds(
        self, feeds: Iterable[FeedObservation]
    ) -> List[ManipulationDetection]:
        """Analyze feeds one after another, in order; returns emitted detections"""
        detections = []
        for feed in feeds:
            detection = await self.analyze_price_feed(
                feed.protocol,
                feed.symbol,
                feed.chain,
                feed.current_price,
                feed.historical_data,
                feed.recent_transactions,
            )
            if detection is not None:
                detections.append(detection)
        return detections

    def _analyze_feed(
        self,
        feed_key: str,
        protocol: str,
        symbol: str,
        chain: str,
        current_price: float,
        historical_data: Sequence[PricePoint],
        recent_transactions: Sequence[TransactionRecord],
    ) -> Optional[ManipulationDetection]:
        now = self._clock()
        self.metrics.record_feed_analysis(protocol, chain)

        history = self._update_price_history(feed_key, historical_data)
        self.last_seen[feed_key] = now

        if not math.isfinite(current_price):
            logger.warning(f"Skipping {feed_key}: non-finite current price {current_price!r}")
            return None

        # 1. Run enabled detectors in fixed order (earlier wins confidence ties)
        checks = (
            ("statistical_anomaly", lambda: self._detect_statistical_anomaly(history, current_price, now)),
            ("flash_loan_attack", lambda: self._detect_flash_loan(recent_transactions, now)),
            ("sandwich_attack", lambda: self._detect_sandwich_attack(recent_transactions, now)),
            ("liquidity_manipulation", lambda: self._detect_liquidity_drop(history, now)),
        )

        signals: List[DetectorSignal] = []
        for rule, check in checks:
            if rule not in self.config.enabled_rules:
                continue
            signal = check()
            if signal is not None:
                signals.append(signal)
                self.metrics.record_detector_signal(rule)

        if not signals:
            return None

        # 2. Merge
        detection = self._merge_signals(
            signals, feed_key, protocol, symbol, chain, current_price, history, recent_transactions, now
        )

        # 3. Gate
        last_alert = self.last_alert_time.get(feed_key)
        if last_alert is not None and now - last_alert < self.config.alerting.cooldown_period:
            logger.debug(
                f"Suppressed {detection.type.value} on {feed_key}: cooldown active "
                f"({now - last_alert}ms since last alert)"
            )
            self.metrics.record_suppressed("cooldown")
            return None

        if severity_rank(detection.severity) < severity_rank(self.config.alerting.min_severity):
            logger.debug(
                f"Suppressed {detection.type.value} on {feed_key}: severity "
                f"{detection.severity.value} below {self.config.alerting.min_severity}"
            )
            self.metrics.record_suppressed("severity")
            return None

        # 4. Record
        self._append_detection(detection)
        self.last_alert_time[feed_key] = now
        self.metrics.record_detection(detection.type.value, detection.severity.value, chain)

        logger.warning(
            format_with_severity_emoji(
                f"MANIPULATION DETECTED: {feed_key} - {detection.type.value} "
                f"(confidence: {detection.confidence:.1f}, severity: {detection.severity.value})",
                detection.severity,
            )
        )

        return detection

    # ============================================================================
    # Pattern detectors
    # ============================================================================

    def _detect_statistical_anomaly(
        self, history: Deque[PricePoint], current_price: float, now: int
    ) -> Optional[DetectorSignal]:
        """Current price vs. the feed's own history (z-score and % deviation)"""
        thresholds = self.config.statistical_thresholds
        if len(history) < thresholds.min_data_points:
            logger.debug(
                f"Statistical check skipped: {len(history)} history points "
                f"(< {thresholds.min_data_points})"
            )
            return None

        prices = np.asarray([p.price for p in history], dtype=float)
        mean = float(np.mean(prices))
        std_dev = float(np.std(prices))
        if std_dev == 0 or mean == 0:
            return None

        z_score = abs(current_price - mean) / std_dev
        deviation_percent = abs(current_price - mean) / abs(mean) * 100

        if deviation_percent <= thresholds.price_deviation:
            return None

        confidence = min(z_score * 10, 100.0)
        evidence = DetectionEvidence(
            type="statistical_deviation",
            description=(
                f"Price deviates {deviation_percent:.2f}% from the {len(prices)}-point mean "
                f"(z-score {z_score:.2f})"
            ),
            data={
                "mean": mean,
                "std_dev": std_dev,
                "z_score": z_score,
                "exceeds_z_score": z_score >= thresholds.z_score,
                "deviation_percent": deviation_percent,
                "current_price": current_price,
                "sample_size": len(prices),
            },
            timestamp=now,
        )
        return DetectorSignal(ManipulationType.STATISTICAL_ANOMALY, confidence, [evidence])

    def _detect_flash_loan(
        self, transactions: Sequence[TransactionRecord], now: int
    ) -> Optional[DetectorSignal]:
        """Flash-loan selectors in recent call data"""
        min_value = self.config.pattern_recognition.flash_loan_min_value

        evidence = []
        for tx in transactions:
            if tx.value < min_value:
                continue
            detector = self.signature_registry.match(tx)
            if detector is None:
                continue
            evidence.append(
                DetectionEvidence(
                    type="flash_loan_signature",
                    description=f"Transaction {tx.hash} calls {describe_method(tx.input)} ({detector.name})",
                    data={
                        "hash": tx.hash,
                        "selector": tx.selector,
                        "signature_detector": detector.name,
                        "value": tx.value,
                        "from": tx.from_address,
                        "to": tx.to_address,
                    },
                    timestamp=now,
                )
            )

        if not evidence:
            return None

        confidence = min(len(evidence) * 30 + 20, 100.0)
        return DetectorSignal(ManipulationType.FLASH_LOAN_ATTACK, confidence, evidence)

    def _detect_sandwich_attack(
        self, transactions: Sequence[TransactionRecord], now: int
    ) -> Optional[DetectorSignal]:
        """Large front/back transactions bracketing a smaller one within the gap limit"""
        if len(transactions) < 3:
            return None

        patterns = self.config.pattern_recognition
        ordered = sorted(transactions, key=lambda tx: tx.timestamp)

        evidence = []
        for i in range(1, len(ordered) - 1):
            front, victim, back = ordered[i - 1], ordered[i], ordered[i + 1]
            front_gap = victim.timestamp - front.timestamp
            back_gap = back.timestamp - victim.timestamp

            if (
                front_gap < patterns.sandwich_max_gap_ms
                and back_gap < patterns.sandwich_max_gap_ms
                and front.value > victim.value
                and back.value > victim.value
                and front.value > patterns.max_normal_tx_value
            ):
                evidence.append(
                    DetectionEvidence(
                        type="sandwich_pattern",
                        description=(
                            f"{victim.hash} bracketed by {front.hash} and {back.hash} "
                            f"within {front_gap + back_gap}ms"
                        ),
                        data={
                            "front_run": front.hash,
                            "victim": victim.hash,
                            "back_run": back.hash,
                            "front_value": front.value,
                            "victim_value": victim.value,
                            "back_value": back.value,
                            "front_gap_ms": front_gap,
                            "back_gap_ms": back_gap,
                        },
                        timestamp=now,
                    )
                )

        if not evidence:
            return None

        confidence = min(70 + 10 * len(evidence), 100.0)
        return DetectorSignal(ManipulationType.SANDWICH_ATTACK, confidence, evidence)

    def _detect_liquidity_drop(
        self, history: Deque[PricePoint], now: int
    ) -> Optional[DetectorSignal]:
        """Latest liquidity vs. the average of the points just before it"""
        if len(history) < 2:
            return None

        latest = history[-1]
        if latest.liquidity is None or not math.isfinite(latest.liquidity):
            return None

        window = self.config.statistical_thresholds.liquidity_window
        recent = list(history)[-(window + 1) : -1]
        baseline_values = [
            p.liquidity for p in recent if p.liquidity is not None and math.isfinite(p.liquidity)
        ]
        if not baseline_values:
            return None

        baseline = sum(baseline_values) / len(baseline_values)
        if baseline <= 0:
            return None

        drop_percent = (baseline - latest.liquidity) / baseline * 100
        if drop_percent <= self.config.statistical_thresholds.liquidity_drop:
            return None

        evidence = DetectionEvidence(
            type="liquidity_drop",
            description=(
                f"Liquidity fell {drop_percent:.1f}% below its {len(baseline_values)}-point average"
            ),
            data={
                "baseline_liquidity": baseline,
                "current_liquidity": latest.liquidity,
                "drop_percent": drop_percent,
                "window": len(baseline_values),
            },
            timestamp=now,
        )
        return DetectorSignal(
            ManipulationType.LIQUIDITY_MANIPULATION, min(drop_percent, 100.0), [evidence]
        )

    # ============================================================================
    # Merge helpers
    # ============================================================================

    def _merge_signals(
        self,
        signals: List[DetectorSignal],
        feed_key: str,
        protocol: str,
        symbol: str,
        chain: str,
        current_price: float,
        history: Deque[PricePoint],
        transactions: Sequence[TransactionRecord],
        now: int,
    ) -> ManipulationDetection:
        primary = signals[0]
        for signal in signals[1:]:
            if signal.confidence > primary.confidence:
                primary = signal

        confidence = _clamp_confidence(primary.confidence)
        severity = severity_from_confidence(confidence)

        evidence: List[DetectionEvidence] = []
        for signal in signals:
            evidence.extend(signal.evidence)

        normal_price = (
            float(np.mean([p.price for p in history])) if history else float(current_price)
        )
        price_deviation = (
            (current_price - normal_price) / normal_price * 100 if normal_price else 0.0
        )

        suspicious = self._suspicious_transactions(transactions)
        duration = (
            max(tx.timestamp for tx in suspicious) - min(tx.timestamp for tx in suspicious)
            if suspicious
            else 0
        )

        addresses = sorted(
            {tx.from_address for tx in suspicious} | {tx.to_address for tx in suspicious}
        )
        impact = DetectionImpact(
            estimated_loss_usd=sum(tx.value for tx in suspicious) * abs(price_deviation) / 100,
            affected_protocols=[protocol],
            affected_addresses=addresses,
        )

        return ManipulationDetection(
            id=f"det-{now:x}-{uuid.uuid4().hex[:10]}",
            type=primary.type,
            severity=severity,
            status=DetectionStatus.DETECTED,
            confidence=confidence,
            timestamp=now,
            affected_feeds=[feed_key],
            details=DetectionDetails(
                description=self._describe(primary.type, protocol, symbol, chain, len(signals)),
                evidence=evidence,
                price_deviation=price_deviation,
                normal_price=normal_price,
                manipulated_price=float(current_price),
                duration=duration,
            ),
            suspicious_transactions=suspicious,
            impact=impact,
            recommended_actions=self._recommended_actions(primary.type, severity, feed_key),
            created_at=now,
            updated_at=now,
        )

    def _suspicious_transactions(
        self, transactions: Sequence[TransactionRecord]
    ) -> List[SuspiciousTransaction]:
        max_normal = self.config.pattern_recognition.max_normal_tx_value
        return [
            SuspiciousTransaction(
                hash=tx.hash,
                timestamp=tx.timestamp,
                from_address=tx.from_address,
                to_address=tx.to_address,
                value=tx.value,
                method=describe_method(tx.input),
                relevance_score=min(tx.value / RELEVANCE_VALUE_SCALE, 100.0),
            )
            for tx in transactions
            if tx.value > max_normal
        ]

    @staticmethod
    def _describe(
        manipulation_type: ManipulationType,
        protocol: str,
        symbol: str,
        chain: str,
        signal_count: int,
    ) -> str:
        feed = f"{symbol} on {protocol} ({chain})"
        descriptions = {
            ManipulationType.STATISTICAL_ANOMALY: f"Price of {feed} deviates sharply from its recent history",
            ManipulationType.FLASH_LOAN_ATTACK: f"Flash-loan activity detected around the {feed} feed",
            ManipulationType.SANDWICH_ATTACK: f"Sandwich trading pattern detected around the {feed} feed",
            ManipulationType.LIQUIDITY_MANIPULATION: f"Liquidity backing {feed} dropped sharply",
        }
        description = descriptions[manipulation_type]
        if signal_count > 1:
            description += f"; {signal_count - 1} other detector(s) also fired"
        return description

    @staticmethod
    def _recommended_actions(
        manipulation_type: ManipulationType, severity: SeverityLevel, feed_key: str
    ) -> List[RecommendedAction]:
        actions: List[RecommendedAction] = []

        if severity in (SeverityLevel.CRITICAL, SeverityLevel.HIGH):
            actions.append(
                RecommendedAction(
                    priority="immediate",
                    action="pause_feed",
                    description=f"Pause consumption of {feed_key} until its price is verified",
                )
            )
        if severity == SeverityLevel.CRITICAL:
            actions.append(
                RecommendedAction(
                    priority="immediate",
                    action="notify_protocol_team",
                    description="Escalate to the protocol's security contacts",
                )
            )

        if manipulation_type == ManipulationType.FLASH_LOAN_ATTACK:
            actions.append(
                RecommendedAction(
                    priority="high",
                    action="check_liquidations",
                    description="Review liquidations executed against the affected price",
                )
            )
        elif manipulation_type == ManipulationType.SANDWICH_ATTACK:
            actions.append(
                RecommendedAction(
                    priority="medium",
                    action="review_transaction_ordering",
                    description="Inspect the bracketing transactions and their senders",
                )
            )
        elif manipulation_type == ManipulationType.LIQUIDITY_MANIPULATION:
            actions.append(
                RecommendedAction(
                    priority="high",
                    action="monitor_liquidity",
                    description="Track pool depth and widen deviation limits until it recovers",
                )
            )
        else:
            actions.append(
                RecommendedAction(
                    priority="high",
                    action="cross_validate_sources",
                    description="Compare the price against independent oracle sources",
                )
            )

        if severity in (SeverityLevel.MEDIUM, SeverityLevel.LOW):
            actions.append(
                RecommendedAction(
                    priority="low",
                    action="continue_monitoring",
                    description=f"Keep {feed_key} under observation",
                )
            )

        return actions

    # ============================================================================
    # State management
    # ============================================================================

    def _update_price_history(
        self, feed_key: str, historical_data: Sequence[PricePoint]
    ) -> Deque[PricePoint]:
        history = self.price_history.get(feed_key)
        if history is None:
            history = deque(maxlen=self.config.max_history_per_feed)
            self.price_history[feed_key] = history
            self.metrics.update_tracked_feeds(len(self.price_history))
        history.extend(p for p in historical_data if math.isfinite(p.price))
        return history

    def _append_detection(self, detection: ManipulationDetection) -> None:
        self.detection_history.append(detection)
        retention = self.config.max_detection_history
        if retention is not None and len(self.detection_history) > retention:
            self.detection_history = self.detection_history[-retention:]
            retained = {d.id for d in self.detection_history}
            self.status_overrides = {
                key: value for key, value in self.status_overrides.items() if key in retained
            }

    def get_price_history(self, protocol: str, symbol: str, chain: str) -> List[PricePoint]:
        """Oldest-first copy of a feed's retained history"""
        return list(self.price_history.get(self.feed_key(protocol, symbol, chain), ()))

    def evict_inactive_feeds(self, max_idle_ms: int) -> List[str]:
        """
        Drop per-feed state for feeds not analyzed within `max_idle_ms`.

        Cooldown entries are kept until their window has passed.
        """
        now = self._clock()
        cooldown = self.config.alerting.cooldown_period
        evicted = [key for key, seen in self.last_seen.items() if now - seen > max_idle_ms]

        for key in evicted:
            self.price_history.pop(key, None)
            self.last_seen.pop(key, None)
            lock = self._feed_locks.get(key)
            if lock is not None and not lock.locked():
                del self._feed_locks[key]
            last_alert = self.last_alert_time.get(key)
            if last_alert is not None and now - last_alert >= cooldown:
                del self.last_alert_time[key]

        if evicted:
            logger.info(f"Evicted {len(evicted)} inactive feeds")
            self.metrics.update_tracked_feeds(len(self.price_history))
        return evicted

    def reset(self) -> None:
        """Clear all history, ledger and cooldown state"""
        self.price_history.clear()
        self.detection_history.clear()
        self.status_overrides.clear()
        self.last_alert_time.clear()
        self.last_seen.clear()
        self._feed_locks.clear()
        self.metrics.update_tracked_feeds(0)

    def update_config(self, overrides: Mapping[str, Any]) -> None:
        """Deep-merge overrides into the active config"""
        new_config = self.config.merged(overrides)
        if new_config.max_history_per_feed != self.config.max_history_per_feed:
            self.price_history = {
                key: deque(points, maxlen=new_config.max_history_per_feed)
                for key, points in self.price_history.items()
            }
        self.config = new_config
        logger.info(f"Detector config updated: {sorted(overrides)}")

    def get_config(self) -> ManipulationDetectionConfig:
        return copy.deepcopy(self.config)

    def update_detection_status(
        self, detection_id: str, status: Union[str, DetectionStatus]
    ) -> Optional[ManipulationDetection]:
        """
        Record a review outcome for a detection.

        The ledger entry itself is left as emitted; a copy carrying the new
        status and updated_at is kept in status_overrides and returned by the
        ledger queries. Returns None if the id is unknown.
        """
        status = DetectionStatus(status)
        for detection in self.detection_history:
            if detection.id == detection_id:
                current = self.status_overrides.get(detection_id, detection)
                updated = replace(current, status=status, updated_at=self._clock())
                self.status_overrides[detection_id] = updated
                logger.info(f"Detection {detection_id} marked {status.value}")
                return updated
        return None

    # ============================================================================
    # Multi-source validation
    # ============================================================================

    def validate_sources(
        self,
        protocol_prices: Mapping[str, float],
        weights: Optional[Mapping[str, float]] = None,
    ) -> SourceValidation:
        """Check that independent oracle sources agree within tolerance"""
        settings = self.config.multi_source_validation
        protocols = list(protocol_prices)
        prices = [protocol_prices[p] for p in protocols]
        weight_list = [weights.get(p, 0.0) for p in protocols] if weights else None

        consensus = calculate_consensus_price(prices, settings.consensus_method, weight_list)
        max_deviation = calculate_max_deviation(protocol_prices, consensus)

        tolerance = settings.price_tolerance / 100
        outliers = (
            [p for p in protocols if abs(protocol_prices[p] - consensus) / abs(consensus) > tolerance]
            if consensus
            else []
        )

        is_consistent = len(prices) >= settings.min_sources and not outliers
        if outliers:
            logger.info(
                f"Source divergence: {','.join(outliers)} beyond "
                f"{settings.price_tolerance:.2f}% of consensus {consensus:.6f}"
            )

        return SourceValidation(
            consensus_price=consensus,
            max_deviation=max_deviation,
            is_consistent=is_consistent,
            outlier_protocols=outliers,
            source_count=len(prices),
        )

    # ============================================================================
    # Ledger queries
    # ============================================================================

    def get_detection_history(
        self,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        severity: Union[str, SeverityLevel, None] = None,
        limit: Optional[int] = None,
    ) -> List[ManipulationDetection]:
        """Ledger entries in range (and of one severity), newest first, review status applied"""
        wanted = parse_severity(severity) if severity is not None else None

        results = [
            d
            for d in (self.status_overrides.get(e.id, e) for e in self.detection_history)
            if (start_time is None or d.timestamp >= start_time)
            and (end_time is None or d.timestamp <= end_time)
            and (wanted is None or d.severity == wanted)
        ]
        results.sort(key=lambda d: d.timestamp, reverse=True)

        if limit is not None:
            results = results[:limit]
        return results

    def get_metrics(
        self, start_time: Optional[int] = None, end_time: Optional[int] = None
    ) -> DetectionMetrics:
        """Aggregate counts, confidence and daily trend over a time range"""
        detections = self.get_detection_history(start_time=start_time, end_time=end_time)
        if not detections:
            return DetectionMetrics()

        by_severity = Counter(d.severity.value for d in detections)
        by_type = Counter(d.type.value for d in detections)

        daily: Dict[str, List[ManipulationDetection]] = defaultdict(list)
        for detection in detections:
            day = datetime.fromtimestamp(detection.timestamp / 1000, tz=timezone.utc)
            daily[day.strftime("%Y-%m-%d")].append(detection)

        trend = [
            {
                "date": date,
                "count": len(items),
                "max_severity": highest_severity(d.severity for d in items).value,
            }
            for date, items in sorted(daily.items())
        ]

        feed_counts = Counter(feed for d in detections for feed in d.affected_feeds)

        return DetectionMetrics(
            total_detections=len(detections),
            by_severity=dict(by_severity),
            by_type=dict(by_type),
            average_confidence=sum(d.confidence for d in detections) / len(detections),
            confirmed_count=sum(1 for d in detections if d.status == DetectionStatus.CONFIRMED),
            false_positive_count=sum(
                1 for d in detections if d.status == DetectionStatus.FALSE_POSITIVE
            ),
            trend=trend,
            top_affected_feeds=[
                {"feed": feed, "count": count}
                for feed, count in feed_counts.most_common(TOP_FEEDS_LIMIT)
            ],
        )


def create_detector(
    config: Union[ManipulationDetectionConfig, Mapping[str, Any], None] = None,
    **kwargs: Any,
) -> ManipulationDetector:
    """Factory for an isolated detector instance (one per hosting service or test)"""
    return ManipulationDetector(config, **kwargs)
