"""Fixed-window utterance capture from a Discord voice connection.

One ``record()`` call subscribes to a single member's decoded audio for the
configured listen window, then turns the raw PCM into a WAV file that is at
least ``min_recording_seconds`` long:

    encode (s16le -> wav) -> measure -> [generate silence -> concatenate]

Every file created along the way belongs to the returned ``RecordingHandle``
and is deleted when the handle is cleaned up. If any step fails, the files
created so far are deleted before ``EncodeError`` propagates.
"""

from __future__ import annotations

import asyncio
import threading
import wave
from collections.abc import Callable
from pathlib import Path
from typing import Any

import discord
import ffmpeg
from discord.ext import voice_recv

from services.common.structured_logging import bind_correlation_id, get_logger

from .config import AudioConfig
from .errors import CaptureError, EncodeError
from .scratch import ScratchDirectory, ScratchFile


PacketHandler = Callable[[Any, Any], None]
SinkFactory = Callable[[PacketHandler], Any]


def build_sink(handler: PacketHandler) -> Any:
    """Return a BasicSink that hands decoded PCM packets to ``handler``."""
    return voice_recv.BasicSink(handler, decode=True)


class RecordingHandle(ScratchFile):
    """A playable WAV recording plus the scratch files used to build it."""

    def __init__(
        self,
        path: Path,
        *,
        duration: float,
        padded: bool,
        intermediates: list[Path] | None = None,
    ) -> None:
        super().__init__(path, intermediates=intermediates)
        self.duration = duration
        self.padded = padded


class UtteranceRecorder:
    """Captures one utterance per call from one member."""

    def __init__(
        self,
        config: AudioConfig,
        scratch: ScratchDirectory,
        *,
        sink_factory: SinkFactory | None = None,
    ) -> None:
        self._config = config
        self._scratch = scratch
        self._sink_factory = sink_factory or build_sink
        self._logger = get_logger(__name__, service_name="helpdesk")

    async def record(
        self,
        voice_client: Any,
        member: discord.abc.Snowflake,
        *,
        correlation_id: str | None = None,
    ) -> RecordingHandle:
        """Record ``member`` for one listen window.

        Raises:
            CaptureError: The receive stream could not start or reported an error
            EncodeError: ffmpeg conversion or padding failed
        """
        logger = bind_correlation_id(self._logger, correlation_id)
        pcm = await self._capture(voice_client, member.id, logger)
        handle = await self._encode(pcm, logger)
        logger.info(
            "recorder.utterance_ready",
            pcm_bytes=len(pcm),
            duration=round(handle.duration, 3),
            padded=handle.padded,
            path=str(handle.path),
        )
        return handle

    async def _capture(self, voice_client: Any, user_id: int, logger: Any) -> bytes:
        buffer = bytearray()
        lock = threading.Lock()
        stream_errors: list[BaseException] = []
        packets = 0

        # Called from the voice receive thread.
        def handler(user: Any, data: Any) -> None:
            nonlocal packets
            if user is None or getattr(user, "id", None) != user_id:
                return
            pcm = getattr(data, "pcm", None)
            if not pcm:
                return
            with lock:
                buffer.extend(pcm)
                packets += 1

        def after(error: Exception | None) -> None:
            if error is not None:
                stream_errors.append(error)

        if not voice_client.is_connected():
            raise CaptureError("voice client is not connected")

        sink = self._sink_factory(handler)
        try:
            voice_client.listen(sink, after=after)
        except discord.ClientException as exc:
            raise CaptureError(f"could not start receiving audio: {exc}") from exc

        logger.debug("recorder.listening", window_seconds=self._config.listen_window_seconds)
        try:
            await asyncio.sleep(self._config.listen_window_seconds)
        finally:
            if voice_client.is_listening():
                voice_client.stop_listening()

        if stream_errors:
            raise CaptureError(f"voice receive stream failed: {stream_errors[0]}") from stream_errors[0]

        with lock:
            logger.debug("recorder.captured", packets=packets, pcm_bytes=len(buffer))
            return bytes(buffer)

    async def _encode(self, pcm: bytes, logger: Any) -> RecordingHandle:
        created: list[Path] = []
        try:
            wav: Path | None = None
            duration = 0.0
            if pcm:
                raw = self._scratch.path_for("capture", ".pcm")
                created.append(raw)
                await asyncio.to_thread(raw.write_bytes, pcm)
                wav = self._scratch.path_for("capture", ".wav")
                created.append(wav)
                await self._run_ffmpeg(
                    ffmpeg.input(
                        str(raw),
                        format="s16le",
                        ar=self._config.sample_rate,
                        ac=self._config.channels,
                    ).output(str(wav), acodec="pcm_s16le"),
                    step="encode",
                )
                duration = await asyncio.to_thread(wav_duration, wav)
                if duration >= self._config.min_recording_seconds:
                    return RecordingHandle(
                        wav, duration=duration, padded=False, intermediates=[raw]
                    )

            pad_seconds = float(self._config.silence_pad_seconds)
            silence = self._scratch.path_for("silence", ".wav")
            created.append(silence)
            layout = "stereo" if self._config.channels == 2 else "mono"
            await self._run_ffmpeg(
                ffmpeg.input(
                    f"anullsrc=r={self._config.sample_rate}:cl={layout}",
                    format="lavfi",
                    t=pad_seconds,
                ).output(str(silence), acodec="pcm_s16le"),
                step="silence",
            )
            if wav is None:
                logger.info("recorder.empty_capture_padded", pad_seconds=pad_seconds)
                return RecordingHandle(silence, duration=pad_seconds, padded=True)

            padded = self._scratch.path_for("utterance", ".wav")
            created.append(padded)
            await self._run_ffmpeg(
                ffmpeg.concat(
                    ffmpeg.input(str(wav)), ffmpeg.input(str(silence)), v=0, a=1
                ).output(str(padded), acodec="pcm_s16le"),
                step="concat",
            )
            logger.info(
                "recorder.short_capture_padded",
                captured_seconds=round(duration, 3),
                pad_seconds=pad_seconds,
            )
            return RecordingHandle(
                padded,
                duration=duration + pad_seconds,
                padded=True,
                intermediates=[path for path in created if path != padded],
            )
        except (OSError, wave.Error) as exc:
            _discard(created)
            raise EncodeError(f"could not prepare recording: {exc}") from exc
        except BaseException:
            _discard(created)
            raise

    async def _run_ffmpeg(self, stream: Any, *, step: str) -> None:
        try:
            await asyncio.to_thread(stream.overwrite_output().run, quiet=True)
        except ffmpeg.Error as exc:
            stderr = exc.stderr.decode("utf-8", errors="replace").strip() if exc.stderr else ""
            self._logger.error("recorder.ffmpeg_failed", step=step, stderr=stderr[-500:])
            raise EncodeError(f"ffmpeg {step} step failed") from exc


def _discard(paths: list[Path]) -> None:
    if paths:
        ScratchFile(paths[0], intermediates=paths[1:]).cleanup()


def wav_duration(path: Path) -> float:
    """Length of a WAV file in seconds."""
    with wave.open(str(path), "rb") as wav_file:
        rate = wav_file.getframerate()
        return wav_file.getnframes() / float(rate) if rate else 0.0


__all__ = ["RecordingHandle", "UtteranceRecorder", "build_sink", "wav_duration"]
