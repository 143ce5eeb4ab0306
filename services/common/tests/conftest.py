"""Test fixtures for common service tests."""

from collections.abc import Callable

import pytest


@pytest.fixture
def set_env(monkeypatch: pytest.MonkeyPatch) -> Callable[..., None]:
    """Set environment variables for the duration of a test."""

    def _set(**values: str) -> None:
        for name, value in values.items():
            monkeypatch.setenv(name, value)

    return _set


@pytest.fixture(autouse=True)
def clean_logging_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("LOG_LEVEL", "LOG_JSON", "SERVICE_NAME", "LOG_FULL_TRACEBACKS"):
        monkeypatch.delenv(name, raising=False)
