"""Entrypoint for the voice helpdesk bot."""

from __future__ import annotations

import asyncio
import sys

from services.common.config import ConfigError
from services.common.structured_logging import configure_logging, get_logger

from .config import load_config
from .discord_voice import run_bot


def main() -> None:
    """Configure logging, load settings and run the bot until it disconnects."""
    # Logging comes up first so configuration errors are reported in the same format.
    configure_logging("INFO", json_logs=True, service_name="helpdesk")
    logger = get_logger(__name__, service_name="helpdesk")

    try:
        config = load_config()
    except ConfigError as exc:
        logger.critical("helpdesk.startup_aborted", error=str(exc))
        sys.exit(1)

    configure_logging(
        config.logging.level,
        json_logs=config.logging.json_logs,
        service_name=config.logging.service_name,
        full_tracebacks=config.logging.full_tracebacks,
    )

    logger.info("helpdesk.starting", review_channel_id=config.discord.review_channel_id)
    try:
        asyncio.run(run_bot(config))
    except KeyboardInterrupt:
        logger.info("helpdesk.interrupted")


if __name__ == "__main__":
    main()
