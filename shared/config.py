"""
Oracle Integrity Configuration Manager
Handles detection thresholds and environment-specific settings
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from shared.env import load_env
from shared.paths import ROOT_DIR
from shared.utils.emoji_severity_system import parse_severity

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised when configuration is missing or invalid (deployment mistake)"""


OUTLIER_METHODS = ("threshold", "iqr", "zscore", "both")
CONSENSUS_METHODS = ("median", "mean", "weighted")
DETECTION_RULES = (
    "statistical_anomaly",
    "flash_loan_attack",
    "sandwich_attack",
    "liquidity_manipulation",
)


def _section_from_dict(section_cls, base, data: Mapping[str, Any], name: str):
    """Overlay a partial mapping onto a section dataclass instance."""
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"'{name}' must be a mapping, got {type(data).__name__}")
    known = {f.name for f in fields(section_cls)}
    unknown = set(data) - known
    if unknown:
        logger.warning(f"Ignoring unknown keys in '{name}': {sorted(unknown)}")
    return replace(base, **{k: v for k, v in data.items() if k in known})


@dataclass
class OutlierDetectionConfig:
    """Outlier detection over a deviation series"""

    method: str = "both"  # 'threshold', 'iqr', 'zscore', 'both'
    threshold: float = 0.01
    iqr_multiplier: float = 1.5
    zscore_threshold: float = 3.0
    min_data_points: int = 5

    def validate(self) -> None:
        if self.method not in OUTLIER_METHODS:
            raise ConfigurationError(f"Unknown outlier method: {self.method!r}")
        if self.threshold < 0 or self.iqr_multiplier < 0 or self.zscore_threshold <= 0:
            raise ConfigurationError("Outlier thresholds must be non-negative")
        if self.min_data_points < 0:
            raise ConfigurationError("min_data_points must be >= 0")


@dataclass
class DeviationThresholds:
    """Ascending fractional cutoffs (0.01 = 1%)"""

    low: float = 0.005
    medium: float = 0.01
    high: float = 0.02
    critical: float = 0.05

    def validate(self) -> None:
        if not (0 <= self.low <= self.medium <= self.high <= self.critical):
            raise ConfigurationError(
                "Deviation thresholds must be ascending: low <= medium <= high <= critical"
            )


@dataclass
class StatisticalThresholds:
    price_deviation: float = 5.0  # percent from history mean
    z_score: float = 3.0  # flagged in evidence; the trigger is price_deviation
    liquidity_drop: float = 30.0  # percent drop vs. recent average
    min_data_points: int = 10
    liquidity_window: int = 5


@dataclass
class PatternRecognitionConfig:
    max_normal_tx_value: float = 100_000.0
    flash_loan_min_value: float = 0.0
    sandwich_max_gap_ms: int = 2_000


@dataclass
class MultiSourceValidationConfig:
    price_tolerance: float = 2.0  # percent from consensus
    min_sources: int = 3
    consensus_method: str = "median"


@dataclass
class AlertingConfig:
    min_severity: str = "medium"
    channels: List[str] = field(default_factory=lambda: ["webhook"])  # routed by stream consumers
    cooldown_period: int = 300_000  # ms


@dataclass
class ManipulationDetectionConfig:
    """Complete manipulation detector configuration"""

    statistical_thresholds: StatisticalThresholds = field(default_factory=StatisticalThresholds)
    pattern_recognition: PatternRecognitionConfig = field(default_factory=PatternRecognitionConfig)
    multi_source_validation: MultiSourceValidationConfig = field(
        default_factory=MultiSourceValidationConfig
    )
    alerting: AlertingConfig = field(default_factory=AlertingConfig)
    enabled_rules: List[str] = field(default_factory=lambda: list(DETECTION_RULES))
    max_history_per_feed: int = 1000
    max_detection_history: Optional[int] = None

    _SECTIONS = {
        "statistical_thresholds": StatisticalThresholds,
        "pattern_recognition": PatternRecognitionConfig,
        "multi_source_validation": MultiSourceValidationConfig,
        "alerting": AlertingConfig,
    }

    def merged(self, overrides: Mapping[str, Any]) -> "ManipulationDetectionConfig":
        """
        Deep-merge a partial mapping over this config.

        Nested sections are merged key by key, so overriding
        `{"alerting": {"cooldown_period": 0}}` keeps the other alerting fields.
        Unknown keys are logged at WARNING and ignored.
        """
        if not isinstance(overrides, Mapping):
            raise ConfigurationError("Detection config overrides must be a mapping")

        changes: Dict[str, Any] = {}
        top_level = {f.name for f in fields(self)}
        for key, value in overrides.items():
            if key in self._SECTIONS:
                section = getattr(self, key)
                if isinstance(value, self._SECTIONS[key]):
                    changes[key] = value
                else:
                    changes[key] = _section_from_dict(self._SECTIONS[key], section, value, key)
            elif key in top_level:
                changes[key] = list(value) if key == "enabled_rules" else value
            else:
                logger.warning(f"Ignoring unknown detection config key: {key!r}")

        config = replace(self, **changes)
        config.validate()
        return config

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]] = None) -> "ManipulationDetectionConfig":
        """Build a config from defaults plus a partial mapping"""
        return cls().merged(data or {})

    def validate(self) -> None:
        """Fail fast on values that can only come from a deployment mistake"""
        stats = self.statistical_thresholds
        if stats.price_deviation < 0 or stats.liquidity_drop < 0 or stats.z_score < 0:
            raise ConfigurationError("Statistical thresholds must be non-negative")
        if stats.min_data_points < 2:
            raise ConfigurationError("statistical_thresholds.min_data_points must be >= 2")
        if stats.liquidity_window < 1:
            raise ConfigurationError("statistical_thresholds.liquidity_window must be >= 1")

        patterns = self.pattern_recognition
        if patterns.max_normal_tx_value < 0 or patterns.flash_loan_min_value < 0:
            raise ConfigurationError("Pattern recognition values must be non-negative")
        if patterns.sandwich_max_gap_ms <= 0:
            raise ConfigurationError("pattern_recognition.sandwich_max_gap_ms must be > 0")

        sources = self.multi_source_validation
        if sources.consensus_method not in CONSENSUS_METHODS:
            raise ConfigurationError(f"Unknown consensus method: {sources.consensus_method!r}")
        if sources.min_sources < 1 or sources.price_tolerance < 0:
            raise ConfigurationError("Invalid multi-source validation settings")

        try:
            parse_severity(self.alerting.min_severity)
        except ValueError:
            raise ConfigurationError(
                f"Unknown alerting.min_severity: {self.alerting.min_severity!r}"
            ) from None
        if self.alerting.cooldown_period < 0:
            raise ConfigurationError("alerting.cooldown_period must be >= 0")

        unknown_rules = set(self.enabled_rules) - set(DETECTION_RULES)
        if unknown_rules:
            raise ConfigurationError(f"Unknown detection rules: {sorted(unknown_rules)}")
        if self.max_history_per_feed < 1:
            raise ConfigurationError("max_history_per_feed must be >= 1")
        if self.max_detection_history is not None and self.max_detection_history < 1:
            raise ConfigurationError("max_detection_history must be >= 1 when set")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class EngineSettings:
    """Process-level settings for a host running the detection engines"""

    environment: str  # 'production', 'staging', 'development'
    debug: bool
    log_level: str
    redis_url: str
    alert_stream: str
    alert_stream_maxlen: int
    detection_config_file: Optional[str]
    alert_min_severity: Optional[str]
    alert_cooldown_ms: Optional[int]

    def load_detection_config(self) -> ManipulationDetectionConfig:
        """
        Build the detector config: defaults, then the JSON overrides file,
        then the alerting overrides from the environment.
        """
        config = ManipulationDetectionConfig()

        if self.detection_config_file:
            path = Path(self.detection_config_file)
            if not path.exists():
                raise ConfigurationError(f"Detection config file not found: {path}")
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
            config = config.merged(data)

        alerting: Dict[str, Any] = {}
        if self.alert_min_severity:
            alerting["min_severity"] = self.alert_min_severity
        if self.alert_cooldown_ms is not None:
            alerting["cooldown_period"] = self.alert_cooldown_ms
        if alerting:
            config = config.merged({"alerting": alerting})

        return config


def _optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


class ConfigManager:
    """Configuration manager for loading environment-specific settings"""

    def __init__(self, root_dir: Optional[Path] = ROOT_DIR):
        self._root_dir = root_dir
        self._settings: Optional[EngineSettings] = None
        self._load_environment_config()

    def _load_environment_config(self):
        """Load settings based on environment"""
        load_env(self._root_dir)

        self._settings = EngineSettings(
            environment=os.getenv("ENVIRONMENT", "development"),
            debug=os.getenv("DEBUG", "False").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            alert_stream=os.getenv("ALERT_STREAM", "oracle:manipulation_alerts"),
            alert_stream_maxlen=int(os.getenv("ALERT_STREAM_MAXLEN", "10000")),
            detection_config_file=os.getenv("DETECTION_CONFIG_FILE") or None,
            alert_min_severity=os.getenv("ALERT_MIN_SEVERITY") or None,
            alert_cooldown_ms=_optional_int("ALERT_COOLDOWN_MS"),
        )

    def get_settings(self) -> EngineSettings:
        """Get the current engine settings"""
        if self._settings is None:
            self._load_environment_config()
        return self._settings

    def get_detection_config(self) -> ManipulationDetectionConfig:
        """Get the detector configuration for this environment"""
        return self.get_settings().load_detection_config()

    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.get_settings().environment == "production"


# Global config manager instance (settings only; detectors are built explicitly)
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get the global configuration manager instance"""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_config() -> EngineSettings:
    """Get the current engine settings"""
    return get_config_manager().get_settings()


def reset_config_manager() -> None:
    """Drop the cached settings so the next access re-reads the environment"""
    global _config_manager
    _config_manager = None
