"""
Basic tests for the oracle integrity engines.
"""

import logging
import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))


class TestEngineImports:
    """Test that all public engines can be imported."""

    def test_import_manipulation_detector(self):
        from engines.manipulation_detector import ManipulationDetector
        assert ManipulationDetector is not None

    def test_import_deviation_analytics(self):
        from engines.deviation_analytics import PriceDeviationAnalytics
        assert PriceDeviationAnalytics is not None

    def test_import_alert_publisher(self):
        from engines.alert_publisher import DetectionPublisher
        assert DetectionPublisher is not None

    def test_package_exports(self):
        import engines
        assert engines.create_detector is not None


class TestSharedImports:
    """Test that shared utilities can be imported."""

    def test_import_paths(self):
        from shared.paths import ROOT_DIR
        assert ROOT_DIR.exists()

    def test_import_logging(self):
        from shared.logging_setup import setup_logging
        assert setup_logging is not None


class TestLogging:
    """Test logging setup."""

    def test_console_only(self):
        from shared.logging_setup import setup_logging

        setup_logging("oracle_test", root_dir=None, level="debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_log_file(self, tmp_path):
        from shared.logging_setup import setup_logging

        setup_logging("oracle_test", root_dir=tmp_path)
        logging.getLogger("oracle_test").info("hello")

        assert (tmp_path / "logs" / "oracle_test.log").exists()

    def test_unknown_level_defaults_to_info(self):
        from shared.logging_setup import setup_logging

        setup_logging("oracle_test", root_dir=None, level="chatty")
        assert logging.getLogger().level == logging.INFO


class TestSeveritySystem:
    """Test severity ranking and emoji formatting."""

    def test_confidence_buckets(self):
        from shared.utils.emoji_severity_system import SeverityLevel, severity_from_confidence

        assert severity_from_confidence(90) == SeverityLevel.CRITICAL
        assert severity_from_confidence(89.9) == SeverityLevel.HIGH
        assert severity_from_confidence(75) == SeverityLevel.HIGH
        assert severity_from_confidence(50) == SeverityLevel.MEDIUM
        assert severity_from_confidence(49.9) == SeverityLevel.LOW
        assert severity_from_confidence(92) == SeverityLevel.CRITICAL
        assert severity_from_confidence(80) == SeverityLevel.HIGH
        assert severity_from_confidence(60) == SeverityLevel.MEDIUM
        assert severity_from_confidence(10) == SeverityLevel.LOW

    def test_ranking(self):
        from shared.utils.emoji_severity_system import highest_severity, severity_rank

        assert severity_rank("LOW") < severity_rank("critical")
        assert highest_severity(["medium", "high", "low"]).value == "high"
        assert highest_severity([]) is None

    def test_parse_unknown(self):
        from shared.utils.emoji_severity_system import parse_severity

        with pytest.raises(ValueError):
            parse_severity("urgent")

    def test_emoji(self):
        from shared.utils.emoji_severity_system import (
            format_with_severity_emoji,
            get_severity_description,
            get_severity_emoji,
        )

        assert format_with_severity_emoji("feed paused", "critical") == "🔴 feed paused"
        assert get_severity_emoji("unknown") == "🔵"
        assert get_severity_description("low") == "informational"
