"""Structured logging for the voice helpdesk.

structlog renders every record, including records from stdlib loggers used by
discord.py and httpx, through one handler on the root logger. Session code
binds its id as ``correlation_id`` so a whole support call can be followed in
the output.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import IO, Any

import structlog


# Voice receive and HTTP libraries log every packet and request at INFO/DEBUG.
_NOISY_LOGGERS: dict[str, int] = {
    "httpcore": logging.WARNING,
    "httpx": logging.WARNING,
    "discord.http": logging.WARNING,
    "discord.gateway": logging.INFO,
    "discord.client": logging.INFO,
    "discord.voice_client": logging.WARNING,
    "discord.voice_state": logging.WARNING,
    "discord.player": logging.WARNING,
    "discord.ext.voice_recv": logging.WARNING,
    "discord.ext.voice_recv.reader": logging.WARNING,
    "discord.ext.voice_recv.router": logging.WARNING,
}

Processor = Callable[[Any, str, dict[str, Any]], dict[str, Any]]


def _numeric_level(level: str) -> int:
    value = logging.getLevelName((level or "").upper())
    return value if isinstance(value, int) else logging.INFO


def _add_service(service_name: str | None) -> Processor:
    def processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        if service_name:
            event_dict.setdefault("service", service_name)
        return event_dict

    return processor


def configure_logging(
    level: str = "INFO",
    *,
    json_logs: bool = True,
    service_name: str | None = None,
    stream: IO[str] | None = None,
    full_tracebacks: bool | None = None,
) -> None:
    """Route structlog and stdlib logging through a single stream handler.

    Args:
        level: Logging level name; unknown names fall back to INFO
        json_logs: Render JSON lines (True) or coloured console output (False)
        service_name: Added as ``service`` to every record that lacks one
        stream: Output stream, ``sys.stdout`` by default
        full_tracebacks: Render exceptions as structured frames instead of a
            formatted string. Defaults to True only at DEBUG.
    """
    numeric_level = _numeric_level(level)
    if full_tracebacks is None:
        full_tracebacks = numeric_level <= logging.DEBUG

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
        _add_service(service_name),
        structlog.processors.dict_tracebacks if full_tracebacks else structlog.processors.format_exc_info,
    ]
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(numeric_level)
    logging.captureWarnings(True)

    for name, noisy_level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(max(noisy_level, numeric_level))

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(
    name: str,
    *,
    correlation_id: str | None = None,
    service_name: str | None = None,
) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound with standard metadata."""
    logger = structlog.stdlib.get_logger(name)
    if correlation_id:
        logger = logger.bind(correlation_id=correlation_id)
    if service_name:
        logger = logger.bind(service=service_name)
    return logger


def bind_correlation_id(
    logger: structlog.stdlib.BoundLogger,
    correlation_id: str | None,
) -> structlog.stdlib.BoundLogger:
    """Bind ``correlation_id`` when one is given, else return ``logger`` unchanged."""
    if correlation_id:
        return logger.bind(correlation_id=correlation_id)
    return logger


@contextmanager
def session_context(session_id: str | None, **fields: Any) -> Generator[None, None, None]:
    """Bind a session id and extra fields to every record logged in this block.

    Values live in structlog context variables, so they apply to the current
    asyncio task only and earlier values are restored on exit.

    Example:
        with session_context(session.id, channel_id=channel.id):
            await session.run()
    """
    values = {key: value for key, value in fields.items() if value is not None}
    if session_id:
        values["correlation_id"] = session_id
    with structlog.contextvars.bound_contextvars(**values):
        yield


__all__ = [
    "bind_correlation_id",
    "configure_logging",
    "get_logger",
    "session_context",
]
