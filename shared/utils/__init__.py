# Shared utilities

from .emoji_severity_system import (
    SeverityLevel,
    format_with_severity_emoji,
    get_severity_description,
    get_severity_emoji,
    highest_severity,
    parse_severity,
    severity_from_confidence,
    severity_rank,
)

__all__ = [
    "get_severity_emoji",
    "get_severity_description",
    "format_with_severity_emoji",
    "highest_severity",
    "parse_severity",
    "severity_from_confidence",
    "severity_rank",
    "SeverityLevel",
]
