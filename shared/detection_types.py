#!/usr/bin/env python3
"""
detection_types.py - Oracle Integrity Detection Data Model

Records exchanged between the price poller, the detection engines and the
alert sinks. Observations and emitted detections are frozen: a detection is
an audit record and is replaced, never edited, when its review status moves.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from shared.utils.emoji_severity_system import SeverityLevel


class ManipulationType(str, Enum):
    STATISTICAL_ANOMALY = "statistical_anomaly"
    FLASH_LOAN_ATTACK = "flash_loan_attack"
    SANDWICH_ATTACK = "sandwich_attack"
    LIQUIDITY_MANIPULATION = "liquidity_manipulation"


class DetectionStatus(str, Enum):
    DETECTED = "detected"
    INVESTIGATING = "investigating"
    CONFIRMED = "confirmed"
    FALSE_POSITIVE = "false_positive"
    RESOLVED = "resolved"


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


@dataclass(frozen=True)
class PricePoint:
    """One observation from one source at one instant (timestamp in epoch ms)"""

    timestamp: int
    price: float
    volume: Optional[float] = None
    liquidity: Optional[float] = None
    source: str = "unknown"


@dataclass(frozen=True)
class TransactionLog:
    address: str
    topics: Tuple[str, ...] = ()
    data: str = "0x"


@dataclass(frozen=True)
class TransactionRecord:
    """Minimal decoded transaction; `input` is only used for selector matching"""

    hash: str
    timestamp: int
    from_address: str
    to_address: str
    value: float
    gas_price: float = 0.0
    gas_used: int = 0
    input: str = "0x"
    logs: Tuple[TransactionLog, ...] = ()

    @property
    def selector(self) -> str:
        """4-byte function selector as lowercase `0x`-prefixed hex"""
        return self.input[:10].lower()


@dataclass(frozen=True)
class DetectionEvidence:
    type: str
    description: str
    data: Dict[str, Any]
    timestamp: int


@dataclass(frozen=True)
class SuspiciousTransaction:
    hash: str
    timestamp: int
    from_address: str
    to_address: str
    value: float
    method: str
    relevance_score: float


@dataclass(frozen=True)
class RecommendedAction:
    priority: str  # 'immediate', 'high', 'medium', 'low'
    action: str
    description: str


@dataclass(frozen=True)
class DetectionImpact:
    estimated_loss_usd: float
    affected_protocols: List[str]
    affected_addresses: List[str]


@dataclass(frozen=True)
class DetectionDetails:
    description: str
    evidence: List[DetectionEvidence]
    price_deviation: float
    normal_price: float
    manipulated_price: float
    duration: int


@dataclass(frozen=True)
class DetectorSignal:
    """Output of a single pattern detector before merging"""

    type: ManipulationType
    confidence: float
    evidence: List[DetectionEvidence]


@dataclass(frozen=True)
class ManipulationDetection:
    """The engine's sole output artifact"""

    id: str
    type: ManipulationType
    severity: SeverityLevel
    status: DetectionStatus
    confidence: float
    timestamp: int
    affected_feeds: List[str]
    details: DetectionDetails
    suspicious_transactions: List[SuspiciousTransaction]
    impact: DetectionImpact
    recommended_actions: List[RecommendedAction]
    created_at: int
    updated_at: int

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready mapping; enums are flattened to their string values"""
        data = asdict(self)
        data["type"] = self.type.value
        data["severity"] = self.severity.value
        data["status"] = self.status.value
        return data


@dataclass
class FeedObservation:
    """One analysis cycle's input for a single feed"""

    protocol: str
    symbol: str
    chain: str
    current_price: float
    historical_data: List[PricePoint] = field(default_factory=list)
    recent_transactions: List[TransactionRecord] = field(default_factory=list)


@dataclass(frozen=True)
class MaxDeviation:
    protocol: str
    deviation: float
    deviation_percent: float


@dataclass(frozen=True)
class SourceValidation:
    consensus_price: float
    max_deviation: Optional[MaxDeviation]
    is_consistent: bool
    outlier_protocols: List[str]
    source_count: int


@dataclass(frozen=True)
class TrendAnalysis:
    direction: TrendDirection
    strength: float
    slope: float
    volatility: float
    intercept: float


@dataclass
class DetectionMetrics:
    total_detections: int = 0
    by_severity: Dict[str, int] = field(default_factory=dict)
    by_type: Dict[str, int] = field(default_factory=dict)
    average_confidence: float = 0.0
    confirmed_count: int = 0
    false_positive_count: int = 0
    trend: List[Dict[str, Any]] = field(default_factory=list)
    top_affected_feeds: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
