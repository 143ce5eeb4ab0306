"""Multi-turn dialogue and ticket summarization through a chat-completion API.

The engine owns no conversation state of its own: the session passes its
``Transcript`` in on every call and the engine appends the user turn and,
on success, the assistant turn. Upstream failures never escape; the caller
receives a fixed fallback line instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import TracebackType
from typing import Any

import httpx

from services.common.structured_logging import bind_correlation_id, get_logger

from .config import ConversationConfig, OpenAIConfig
from .errors import UpstreamError
from .transcript import Role, Transcript


@dataclass(frozen=True, slots=True)
class Persona:
    """Values substituted into the persona and greeting templates."""

    bot_name: str
    server_name: str

    def render(self, template: str) -> str:
        return template.format(bot_name=self.bot_name, server_name=self.server_name)


class DialogueEngine:
    """Generates assistant replies and ticket summaries."""

    def __init__(
        self,
        openai: OpenAIConfig,
        conversation: ConversationConfig,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._openai = openai
        self._conversation = conversation
        self._client = client
        self._owns_client = client is None
        self._logger = get_logger(__name__, service_name="helpdesk")

    async def __aenter__(self) -> DialogueEngine:
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

    @property
    def apology(self) -> str:
        return str(self._conversation.apology_message)

    async def continue_conversation(
        self,
        transcript: Transcript,
        utterance: str,
        persona: Persona,
        *,
        speaker: str = "User",
        correlation_id: str | None = None,
    ) -> str:
        """Append the utterance, ask the model for the next turn and append it.

        Returns the assistant reply, or the apology line if the upstream call
        failed (in which case no assistant turn is recorded).
        """
        logger = bind_correlation_id(self._logger, correlation_id)

        if not transcript.seeded:
            transcript.append(
                Role.SYSTEM, "system", persona.render(self._conversation.persona_template)
            )
        transcript.append(Role.USER, speaker, utterance)

        try:
            reply = await self._complete(transcript.messages())
        except UpstreamError as exc:
            logger.error(
                "dialogue.reply_failed",
                error=str(exc),
                status_code=exc.status_code,
                turns=len(transcript),
            )
            return self.apology

        transcript.append(Role.ASSISTANT, persona.bot_name, reply)
        logger.info("dialogue.reply_generated", reply_length=len(reply), turns=len(transcript))
        return reply

    async def summarize(self, text: str, *, correlation_id: str | None = None) -> str:
        """Summarize a finished conversation for a ticket.

        Stateless: ``text`` is sent as a single user message behind the
        summarization instruction.
        """
        logger = bind_correlation_id(self._logger, correlation_id)
        messages = [
            {
                "role": Role.USER.value,
                "content": f"{self._conversation.summary_instruction}\n\n{text}",
            }
        ]
        try:
            summary = await self._complete(messages)
        except UpstreamError as exc:
            logger.error("dialogue.summary_failed", error=str(exc), status_code=exc.status_code)
            return str(self._conversation.summary_unavailable_message)
        logger.info("dialogue.summary_generated", summary_length=len(summary))
        return summary

    async def _complete(self, messages: list[dict[str, str]]) -> str:
        client = self._ensure_client()
        payload: dict[str, Any] = {
            "model": self._openai.chat_model,
            "messages": messages,
            "temperature": self._openai.temperature,
        }
        try:
            response = await client.post(
                f"{self._openai.base_url.rstrip('/')}/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self._openai.api_key}"},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                "chat",
                f"HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamError("chat", str(exc) or type(exc).__name__) from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise UpstreamError("chat", "malformed completion payload") from exc
        if not isinstance(content, str) or not content.strip():
            raise UpstreamError("chat", "empty completion")
        return content.strip()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._openai.request_timeout_seconds, connect=10.0)
            )
        return self._client


__all__ = ["DialogueEngine", "Persona"]
