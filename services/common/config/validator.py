"""Reusable field validators for the configuration system."""

from __future__ import annotations

import re


_URL_PATTERN = re.compile(
    r"^https?://"  # http:// or https://
    r"(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,6}\.?|"  # domain
    r"localhost|"  # localhost
    r"[A-Z0-9-]+|"  # single-label host (docker service names)
    r"\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})"  # IP
    r"(?::\d+)?"  # optional port
    r"(?:/?|[/?]\S+)$",
    re.IGNORECASE,
)


def validate_url(url: str) -> bool:
    """Validate URL format.

    Args:
        url: URL to validate

    Returns:
        True if valid URL, False otherwise
    """
    if not url:
        return False
    return bool(_URL_PATTERN.match(url))


def validate_snowflake(value: int) -> bool:
    """Discord IDs are positive integers; 0 means "not configured"."""
    return value >= 0


def validate_phrases(phrases: list[str]) -> bool:
    """Phrase lists must not contain empty entries."""
    return all(isinstance(phrase, str) and phrase.strip() for phrase in phrases)


__all__ = ["validate_phrases", "validate_snowflake", "validate_url"]
