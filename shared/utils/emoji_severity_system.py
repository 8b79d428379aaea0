#!/usr/bin/env python3
"""
emoji_severity_system.py - Detection Severity System

Severity tiers shared by every detection engine: ranking, confidence
bucketing and the emoji prefixes used in alert log lines.
"""

from enum import Enum
from typing import Dict, Iterable, Optional, Union


class SeverityLevel(str, Enum):
    """Enumeration for severity levels"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_RANKS: Dict[SeverityLevel, int] = {
    SeverityLevel.LOW: 0,
    SeverityLevel.MEDIUM: 1,
    SeverityLevel.HIGH: 2,
    SeverityLevel.CRITICAL: 3,
}

# Confidence floors, checked highest first
CONFIDENCE_BUCKETS = (
    (90.0, SeverityLevel.CRITICAL),
    (75.0, SeverityLevel.HIGH),
    (50.0, SeverityLevel.MEDIUM),
)


def parse_severity(severity: Union[str, SeverityLevel]) -> SeverityLevel:
    """
    Normalise a severity given as enum or string (case insensitive).

    Raises:
        ValueError: if the value is not a known severity
    """
    if isinstance(severity, SeverityLevel):
        return severity
    return SeverityLevel(str(severity).strip().lower())


def severity_rank(severity: Union[str, SeverityLevel]) -> int:
    """Ordinal rank of a severity, low=0 ... critical=3."""
    return SEVERITY_RANKS[parse_severity(severity)]


def severity_from_confidence(confidence: float) -> SeverityLevel:
    """
    Bucket a 0-100 confidence into a severity tier.

    >=90 critical, >=75 high, >=50 medium, anything else low.
    """
    for floor, level in CONFIDENCE_BUCKETS:
        if confidence >= floor:
            return level
    return SeverityLevel.LOW


def highest_severity(
    severities: Iterable[Union[str, SeverityLevel]],
) -> Optional[SeverityLevel]:
    """Return the most severe entry, or None for an empty iterable."""
    best: Optional[SeverityLevel] = None
    for severity in severities:
        level = parse_severity(severity)
        if best is None or SEVERITY_RANKS[level] > SEVERITY_RANKS[best]:
            best = level
    return best


def get_severity_emoji(severity: Union[str, SeverityLevel]) -> str:
    """
    Map severity level to appropriate emoji.

    Args:
        severity: Severity level as string (case insensitive) or enum

    Returns:
        Emoji corresponding to severity level
    """
    severity_emojis = {
        SeverityLevel.CRITICAL: "🔴",  # active manipulation, pause the feed
        SeverityLevel.HIGH: "🟠",  # likely attack pattern
        SeverityLevel.MEDIUM: "🟡",  # unusual pattern
        SeverityLevel.LOW: "🟢",  # informational
    }

    try:
        return severity_emojis[parse_severity(severity)]
    except ValueError:
        return "🔵"  # default to blue for unknown


def get_severity_description(severity: Union[str, SeverityLevel]) -> str:
    """
    Get description of what the severity level represents.

    Args:
        severity: Severity level as string (case insensitive) or enum

    Returns:
        Description of what the severity level represents
    """
    descriptions = {
        SeverityLevel.CRITICAL: "active manipulation, feed should be paused",
        SeverityLevel.HIGH: "likely attack pattern, investigate now",
        SeverityLevel.MEDIUM: "unusual pattern, monitor closely",
        SeverityLevel.LOW: "informational",
    }

    try:
        return descriptions[parse_severity(severity)]
    except ValueError:
        return "unknown"


def format_with_severity_emoji(message: str, severity: Union[str, SeverityLevel]) -> str:
    """
    Format a message with appropriate severity emoji prefix.

    Args:
        message: The message to format
        severity: Severity level

    Returns:
        Formatted message with emoji prefix
    """
    emoji = get_severity_emoji(severity)
    return f"{emoji} {message}"
