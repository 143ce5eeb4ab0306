"""Audio playback for Discord voice channels."""

from __future__ import annotations

import asyncio
from pathlib import Path

import discord

from services.common.structured_logging import get_logger

logger = get_logger(__name__, service_name="helpdesk")


async def play_file(
    voice_client: discord.VoiceClient,
    path: Path,
    *,
    correlation_id: str | None = None,
) -> bool:
    """Play an audio file and wait until playback finishes.

    Args:
        voice_client: Connected voice client to play on
        path: Any file ffmpeg can decode
        correlation_id: Correlation ID for logging

    Returns:
        True if the file played to the end, False if playback was skipped or
        reported an error. Cancelling the caller stops the player.
    """
    if not voice_client or not voice_client.is_connected():
        logger.warning(
            "playback.skipped",
            reason="voice_client_not_connected",
            correlation_id=correlation_id,
        )
        return False

    loop = asyncio.get_running_loop()
    finished: asyncio.Future[Exception | None] = loop.create_future()

    def _after(error: Exception | None) -> None:
        # Runs on the player thread.
        loop.call_soon_threadsafe(_resolve, finished, error)

    if voice_client.is_playing():
        voice_client.stop()

    try:
        source = discord.FFmpegPCMAudio(str(path))
        voice_client.play(source, after=_after)
    except (discord.ClientException, OSError) as exc:
        logger.error(
            "playback.start_failed",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(path),
            correlation_id=correlation_id,
        )
        return False

    logger.debug("playback.started", path=str(path), correlation_id=correlation_id)
    try:
        error = await finished
    except asyncio.CancelledError:
        if voice_client.is_playing():
            voice_client.stop()
        raise

    if error is not None:
        logger.error(
            "playback.error",
            error=str(error),
            error_type=type(error).__name__,
            correlation_id=correlation_id,
        )
        return False
    logger.debug("playback.completed", path=str(path), correlation_id=correlation_id)
    return True


def _resolve(future: asyncio.Future[Exception | None], error: Exception | None) -> None:
    if not future.done():
        future.set_result(error)


__all__ = ["play_file"]
