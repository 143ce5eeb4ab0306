"""Block-list matching for transcribed utterances."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from services.common.structured_logging import get_logger


logger = get_logger(__name__, service_name="helpdesk")


def load_blocked_words(path: str | Path | None) -> list[str]:
    """Read one phrase per line, lowercased and stripped, skipping blanks.

    A missing or unset path disables the filter and returns an empty list.
    """
    if not path:
        return []
    word_file = Path(path)
    if not word_file.is_file():
        logger.info("content_filter.word_list_missing", path=str(word_file))
        return []
    words = [
        line.strip().lower()
        for line in word_file.read_text(encoding="utf-8").splitlines()
        if line.strip()
    ]
    logger.info("content_filter.word_list_loaded", path=str(word_file), words=len(words))
    return words


def is_blocked(text: str, words: Iterable[str]) -> bool:
    """Return True if any blocked phrase occurs in ``text``, ignoring case."""
    candidate = text.lower()
    return any(word.lower() in candidate for word in words if word)


__all__ = ["is_blocked", "load_blocked_words"]
