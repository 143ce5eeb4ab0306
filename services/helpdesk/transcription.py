"""Client for the OpenAI speech-to-text endpoint."""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from types import TracebackType
from typing import Any

import httpx

from services.common.structured_logging import bind_correlation_id, get_logger

from .config import OpenAIConfig
from .errors import UpstreamError


class TranscriptionClient:
    """Uploads a recorded utterance and returns the recognized text.

    ``None`` means "no usable speech": the caller re-listens rather than
    treating it as an error.
    """

    def __init__(
        self,
        config: OpenAIConfig,
        *,
        session: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._session = session
        self._owns_session = session is None
        self._logger = get_logger(__name__, service_name="helpdesk")

    async def __aenter__(self) -> TranscriptionClient:
        self._ensure_session()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.aclose()
            self._session = None

    async def transcribe(self, path: Path, *, correlation_id: str | None = None) -> str | None:
        logger = bind_correlation_id(self._logger, correlation_id)

        try:
            audio = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            logger.error("stt.read_failed", path=str(path), error=str(exc))
            return None

        logger.info(
            "stt.request_initiated",
            audio_bytes=len(audio),
            model=self._config.transcription_model,
            language=self._config.transcription_language,
        )
        start_time = time.monotonic()
        try:
            payload = await self._request(path.name, audio)
        except UpstreamError as exc:
            logger.error(
                "stt.request_failed",
                error=str(exc),
                status_code=exc.status_code,
                latency_ms=int((time.monotonic() - start_time) * 1000),
            )
            return None

        text = str(payload.get("text") or "").strip()
        latency_ms = int((time.monotonic() - start_time) * 1000)
        if not text:
            logger.info("stt.no_speech", latency_ms=latency_ms)
            return None
        logger.info("stt.transcribed", text_length=len(text), latency_ms=latency_ms)
        return text

    async def _request(self, filename: str, audio: bytes) -> dict[str, Any]:
        session = self._ensure_session()
        files = {"file": (filename, audio, "audio/wav")}
        data = {
            "model": self._config.transcription_model,
            "language": self._config.transcription_language,
        }
        try:
            response = await session.post(
                f"{self._config.base_url.rstrip('/')}/audio/transcriptions",
                files=files,
                data=data,
                headers={"Authorization": f"Bearer {self._config.api_key}"},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                "stt",
                f"HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamError("stt", str(exc) or type(exc).__name__) from exc

        if not isinstance(payload, dict):
            raise UpstreamError("stt", "malformed transcription payload")
        return payload

    def _ensure_session(self) -> httpx.AsyncClient:
        if self._session is None:
            self._session = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.request_timeout_seconds, connect=5.0)
            )
        return self._session


__all__ = ["TranscriptionClient"]
