"""Text-to-speech client for ElevenLabs."""

from __future__ import annotations

import asyncio
from types import TracebackType

import httpx

from services.common.structured_logging import bind_correlation_id, get_logger

from .config import ElevenLabsConfig
from .errors import UpstreamError
from .scratch import ScratchDirectory, ScratchFile


class SpeechSynthesizer:
    """Turns text into a playable scratch file.

    Failures are logged and reported as ``None``; the session skips the
    segment rather than ending.
    """

    def __init__(
        self,
        config: ElevenLabsConfig,
        scratch: ScratchDirectory,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._scratch = scratch
        self._client = client
        self._owns_client = client is None
        self._logger = get_logger(__name__, service_name="helpdesk")

    async def __aenter__(self) -> SpeechSynthesizer:
        self._ensure_client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def synthesize(self, text: str, *, correlation_id: str | None = None) -> ScratchFile | None:
        logger = bind_correlation_id(self._logger, correlation_id)
        if not text.strip():
            logger.debug("tts.empty_text_skipped")
            return None

        try:
            audio = await self._request(text)
        except UpstreamError as exc:
            logger.error("tts.synthesis_failed", error=str(exc), status_code=exc.status_code)
            return None

        path = self._scratch.path_for("tts", ".mp3")
        try:
            await asyncio.to_thread(path.write_bytes, audio)
        except OSError as exc:
            path.unlink(missing_ok=True)
            logger.error("tts.write_failed", path=str(path), error=str(exc))
            return None

        logger.info("tts.synthesized", text_length=len(text), size_bytes=len(audio), path=str(path))
        return ScratchFile(path)

    async def _request(self, text: str) -> bytes:
        client = self._ensure_client()
        url = f"{self._config.base_url.rstrip('/')}/text-to-speech/{self._config.voice_id}"
        try:
            response = await client.post(
                url,
                json={"text": text},
                headers={"xi-api-key": self._config.api_key, "Accept": "audio/mpeg"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                "tts",
                f"HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError("tts", str(exc) or type(exc).__name__) from exc

        if not response.content:
            raise UpstreamError("tts", "empty audio payload", status_code=response.status_code)
        return response.content

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.request_timeout_seconds, connect=10.0)
            )
        return self._client


__all__ = ["SpeechSynthesizer"]
