"""Error taxonomy for the voice helpdesk.

``ConfigError`` lives in ``services.common.config`` and is fatal at startup.
The errors below are raised by the voice pipeline and absorbed by the
session loop; none of them ends a session on its own.
"""

from __future__ import annotations


class HelpdeskError(Exception):
    """Base class for voice pipeline errors."""


class UpstreamError(HelpdeskError):
    """A third-party API call failed (transport, HTTP status or payload)."""

    def __init__(self, service: str, message: str, *, status_code: int | None = None) -> None:
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service}: {message}")


class CaptureError(HelpdeskError):
    """The voice receive stream could not be started or reported an error."""


class EncodeError(HelpdeskError):
    """Converting captured audio into a playable file failed."""


__all__ = ["CaptureError", "EncodeError", "HelpdeskError", "UpstreamError"]
