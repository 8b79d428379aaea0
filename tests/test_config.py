"""
Tests for detection config merging and environment-driven settings.
"""

import json
import logging
import os

import pytest

from shared.config import (
    ConfigManager,
    ConfigurationError,
    EngineSettings,
    ManipulationDetectionConfig,
)

ENV_VARS = (
    "ENVIRONMENT",
    "LOG_LEVEL",
    "REDIS_URL",
    "ALERT_STREAM",
    "ALERT_STREAM_MAXLEN",
    "DETECTION_CONFIG_FILE",
    "ALERT_MIN_SEVERITY",
    "ALERT_COOLDOWN_MS",
)


def make_settings(**overrides):
    values = dict(
        environment="development",
        debug=False,
        log_level="INFO",
        redis_url="redis://localhost:6379/0",
        alert_stream="oracle:manipulation_alerts",
        alert_stream_maxlen=10_000,
        detection_config_file=None,
        alert_min_severity=None,
        alert_cooldown_ms=None,
    )
    values.update(overrides)
    return EngineSettings(**values)


@pytest.fixture
def clean_env(monkeypatch):
    saved = dict(os.environ)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield monkeypatch
    # load_env writes .env values straight into os.environ
    os.environ.clear()
    os.environ.update(saved)


class TestDetectionConfig:
    def test_defaults(self):
        config = ManipulationDetectionConfig()
        assert config.statistical_thresholds.price_deviation == 5.0
        assert config.statistical_thresholds.min_data_points == 10
        assert config.pattern_recognition.sandwich_max_gap_ms == 2000
        assert config.alerting.cooldown_period == 300_000
        assert len(config.enabled_rules) == 4

    def test_nested_merge_keeps_siblings(self):
        config = ManipulationDetectionConfig.from_dict({"alerting": {"cooldown_period": 0}})
        assert config.alerting.cooldown_period == 0
        assert config.alerting.min_severity == "medium"
        assert config.alerting.channels == ["webhook"]

    def test_merge_does_not_mutate_base(self):
        base = ManipulationDetectionConfig()
        base.merged({"statistical_thresholds": {"z_score": 4.0}})
        assert base.statistical_thresholds.z_score == 3.0

    @pytest.mark.parametrize(
        "overrides",
        [
            {"alerting": {"min_severity": "urgent"}},
            {"alerting": {"cooldown_period": -1}},
            {"enabled_rules": ["front_running"]},
            {"max_history_per_feed": 0},
            {"multi_source_validation": {"consensus_method": "mode"}},
            {"statistical_thresholds": {"min_data_points": 1}},
            {"alerting": "loud"},
        ],
    )
    def test_rejects_invalid(self, overrides):
        with pytest.raises(ConfigurationError):
            ManipulationDetectionConfig.from_dict(overrides)

    def test_unknown_keys_are_ignored(self, caplog):
        with caplog.at_level(logging.WARNING, logger="shared.config"):
            config = ManipulationDetectionConfig.from_dict(
                {"alerting": {"cooldown_period": 0, "extra": 1}, "alerts": {}}
            )

        assert config.alerting.cooldown_period == 0
        assert not hasattr(config.alerting, "extra")
        assert "extra" in caplog.text
        assert "alerts" in caplog.text

    def test_to_dict(self):
        data = ManipulationDetectionConfig().to_dict()
        assert data["alerting"]["min_severity"] == "medium"
        assert data["max_detection_history"] is None


class TestEngineSettings:
    def test_json_file_then_env_overrides(self, tmp_path):
        config_file = tmp_path / "detection.json"
        config_file.write_text(
            json.dumps(
                {
                    "alerting": {"min_severity": "low", "cooldown_period": 1000},
                    "pattern_recognition": {"max_normal_tx_value": 50000},
                }
            )
        )
        settings = make_settings(detection_config_file=str(config_file), alert_min_severity="high")

        config = settings.load_detection_config()

        assert config.alerting.min_severity == "high"
        assert config.alerting.cooldown_period == 1000
        assert config.pattern_recognition.max_normal_tx_value == 50000

    def test_missing_file(self, tmp_path):
        settings = make_settings(detection_config_file=str(tmp_path / "nope.json"))
        with pytest.raises(ConfigurationError):
            settings.load_detection_config()

    def test_bad_json(self, tmp_path):
        config_file = tmp_path / "detection.json"
        config_file.write_text("{not json")
        with pytest.raises(ConfigurationError):
            make_settings(detection_config_file=str(config_file)).load_detection_config()


class TestConfigManager:
    def test_env_values(self, clean_env, tmp_path):
        clean_env.setenv("ENVIRONMENT", "production")
        clean_env.setenv("ALERT_STREAM", "alerts:test")
        clean_env.setenv("ALERT_COOLDOWN_MS", "1500")

        manager = ConfigManager(root_dir=tmp_path)

        assert manager.is_production()
        assert manager.get_settings().alert_stream == "alerts:test"
        assert manager.get_detection_config().alerting.cooldown_period == 1500

    def test_dotenv_file(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text("ALERT_MIN_SEVERITY=critical\n")

        manager = ConfigManager(root_dir=tmp_path)

        assert manager.get_settings().alert_min_severity == "critical"
        assert manager.get_detection_config().alerting.min_severity == "critical"

    def test_invalid_integer(self, clean_env, tmp_path):
        clean_env.setenv("ALERT_COOLDOWN_MS", "soon")
        with pytest.raises(ConfigurationError):
            ConfigManager(root_dir=tmp_path)
