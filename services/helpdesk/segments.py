"""Reply segmentation for speech synthesis."""

from __future__ import annotations


def split_response(text: str, max_length: int = 200) -> list[str]:
    """Split ``text`` into trimmed chunks of at most ``max_length`` characters.

    Breaks at the last whitespace at or before the limit so words stay whole.
    A word longer than the limit is cut exactly at the limit. Never returns
    empty chunks.
    """
    if max_length < 1:
        raise ValueError("max_length must be positive")

    remaining = text.strip()
    parts: list[str] = []
    while len(remaining) > max_length:
        split_at = _last_space(remaining, max_length)
        if split_at <= 0:
            split_at = max_length
        parts.append(remaining[:split_at].strip())
        remaining = remaining[split_at:].strip()
    if remaining:
        parts.append(remaining)
    return parts


def _last_space(text: str, limit: int) -> int:
    for index in range(min(limit, len(text) - 1), -1, -1):
        if text[index].isspace():
            return index
    return -1


__all__ = ["split_response"]
