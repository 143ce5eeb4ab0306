"""Voice session state machine and the per-channel session registry.

A ``VoiceSession`` drives one support call::

    IDLE -> CONNECTING -> GREETING -> LISTENING -> RESPONDING -> LISTENING ...
                                                -> ESCALATING -> ENDING
                                                -> ENDING -> TERMINATED

Capture and playback are strictly sequenced inside the session task. Every
termination path goes through ``VoiceSession.end()``, which runs teardown at
most once and flushes the transcript at most once.
"""

from __future__ import annotations

import asyncio
import contextlib
import string
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import discord

from services.common.structured_logging import get_logger, session_context

from .config import ConversationConfig
from .content_filter import is_blocked
from .dialogue import DialogueEngine, Persona
from .errors import CaptureError, EncodeError
from .playback import play_file
from .recorder import UtteranceRecorder
from .segments import split_response
from .tickets import TicketPublisher
from .transcript import Role, Transcript
from .transcription import TranscriptionClient
from .tts import SpeechSynthesizer


Connector = Callable[[Any], Awaitable[Any]]
Player = Callable[..., Awaitable[bool]]

_PUNCTUATION = str.maketrans("", "", string.punctuation)


class SessionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    GREETING = "greeting"
    LISTENING = "listening"
    RESPONDING = "responding"
    ESCALATING = "escalating"
    ENDING = "ending"
    TERMINATED = "terminated"


class Route(str, Enum):
    END = "end"
    ESCALATE = "escalate"
    RESPOND = "respond"


def normalize_phrase(text: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace."""
    return " ".join(text.lower().translate(_PUNCTUATION).split())


def route_utterance(
    text: str,
    *,
    end_phrases: list[str],
    escalation_phrases: list[str],
) -> Route:
    candidate = normalize_phrase(text)
    if any(normalize_phrase(phrase) in candidate for phrase in end_phrases if phrase):
        return Route.END
    if any(normalize_phrase(phrase) in candidate for phrase in escalation_phrases if phrase):
        return Route.ESCALATE
    return Route.RESPOND


@dataclass(slots=True)
class SessionServices:
    """Collaborators shared read-only by every session."""

    connect: Connector
    recorder: UtteranceRecorder
    transcriber: TranscriptionClient
    synthesizer: SpeechSynthesizer
    dialogue: DialogueEngine
    publisher: TicketPublisher
    conversation: ConversationConfig
    blocked_words: list[str] = field(default_factory=list)
    play: Player = play_file


class VoiceSession:
    """One support call in one voice channel."""

    def __init__(
        self,
        *,
        channel: Any,
        member: Any,
        persona: Persona,
        services: SessionServices,
        on_terminated: Callable[[VoiceSession], None] | None = None,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.channel = channel
        self.guild = getattr(channel, "guild", None)
        self.member = member
        self.persona = persona
        self.transcript = Transcript()
        self.voice_client: Any | None = None
        self._services = services
        self._on_terminated = on_terminated
        self._state = SessionState.IDLE
        self._task: asyncio.Task[None] | None = None
        self._flush_task: asyncio.Future[None] | None = None
        self._ending = False
        self._logger = get_logger(__name__, service_name="helpdesk").bind(
            correlation_id=self.id,
            channel_id=getattr(channel, "id", None),
            member_id=getattr(member, "id", None),
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def ending(self) -> bool:
        return self._ending

    @property
    def speaker(self) -> str:
        return str(getattr(self.member, "display_name", None) or "User")

    def start(self) -> asyncio.Task[None]:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"voice-session-{self.id}")
        return self._task

    async def wait_closed(self) -> None:
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    async def end(self, reason: str) -> None:
        """Tear the session down exactly once.

        Cancels whatever step is in flight, flushes the transcript if that has
        not happened yet, stops audio, disconnects and marks the session
        terminated. Later calls return immediately.
        """
        if self._ending:
            self._logger.debug("session.end_ignored", reason=reason, state=self._state.value)
            return
        self._ending = True
        self._logger.info("session.ending", reason=reason, state=self._state.value)
        self._set_state(SessionState.ENDING)

        task = self._task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        try:
            await self._flush(open_ticket=False)
        finally:
            await self._teardown_voice()
            self._set_state(SessionState.TERMINATED)
            self._logger.info("session.terminated", reason=reason, turns=len(self.transcript))
            if self._on_terminated is not None:
                self._on_terminated(self)

    async def _run(self) -> None:
        # Records from discord.py and httpx inside this task carry the session id too.
        with session_context(
            self.id,
            channel_id=getattr(self.channel, "id", None),
            guild_id=getattr(self.guild, "id", None),
        ):
            await self._converse()

    async def _converse(self) -> None:
        try:
            if not await self._connect():
                await self.end("connect_failed")
                return

            self._set_state(SessionState.GREETING)
            await self._say(self.persona.render(self._services.conversation.greeting_template))

            while not self._ending:
                if not self.voice_client.is_connected():
                    await self.end("voice_disconnected")
                    return
                text = await self._listen_once(SessionState.LISTENING)
                if text is None:
                    continue
                if is_blocked(text, self._services.blocked_words):
                    self._logger.info("session.utterance_blocked")
                    await self._say(self._services.conversation.refusal_message)
                    continue

                route = route_utterance(
                    text,
                    end_phrases=self._services.conversation.end_phrases,
                    escalation_phrases=self._services.conversation.escalation_phrases,
                )
                if route is Route.END:
                    self.transcript.append(Role.USER, self.speaker, text)
                    await self.end("end_phrase")
                    return
                if route is Route.ESCALATE:
                    self.transcript.append(Role.USER, self.speaker, text)
                    await self._escalate()
                    await self.end("escalated")
                    return
                await self._respond(text)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._logger.exception(
                "session.loop_failed", error=str(exc), state=self._state.value
            )
            await self.end("error")

    async def _connect(self) -> bool:
        self._set_state(SessionState.CONNECTING)
        try:
            self.voice_client = await self._services.connect(self.channel)
        except (asyncio.TimeoutError, discord.ClientException, discord.HTTPException) as exc:
            self._logger.error(
                "session.connect_failed", error=str(exc), error_type=type(exc).__name__
            )
            return False
        self._logger.info("session.connected")
        return True

    async def _listen_once(self, state: SessionState) -> str | None:
        self._set_state(state)
        try:
            recording = await self._services.recorder.record(
                self.voice_client, self.member, correlation_id=self.id
            )
        except (CaptureError, EncodeError) as exc:
            self._logger.warning(
                "session.capture_failed", error=str(exc), error_type=type(exc).__name__
            )
            return None
        with recording:
            text = await self._services.transcriber.transcribe(
                recording.path, correlation_id=self.id
            )
        if text is None:
            self._logger.debug("session.no_speech")
        return text

    async def _respond(self, text: str) -> None:
        self._set_state(SessionState.RESPONDING)
        reply = await self._services.dialogue.continue_conversation(
            self.transcript,
            text,
            self.persona,
            speaker=self.speaker,
            correlation_id=self.id,
        )
        segments = split_response(reply, self._services.conversation.segment_max_length)
        self._logger.info("session.responding", segments=len(segments))
        for segment in segments:
            await self._say(segment)

    async def _escalate(self) -> None:
        self._set_state(SessionState.ESCALATING)
        self._logger.info("session.escalating")
        for question in self._services.conversation.escalation_questions:
            self.transcript.append(Role.ASSISTANT, self.persona.bot_name, question)
            await self._say(question)
            answer = await self._listen_once(SessionState.ESCALATING)
            if answer:
                self.transcript.append(Role.USER, self.speaker, answer)
        await self._flush(open_ticket=True)
        await self._say(self._services.conversation.goodbye_message)

    async def _say(self, text: str) -> bool:
        audio = await self._services.synthesizer.synthesize(text, correlation_id=self.id)
        if audio is None:
            return False
        with audio:
            return await self._services.play(
                self.voice_client, Path(audio.path), correlation_id=self.id
            )

    async def _flush(self, *, open_ticket: bool) -> None:
        if self._flush_task is None:
            self._flush_task = asyncio.ensure_future(
                self._services.publisher.flush(
                    self.transcript, session_id=self.id, open_ticket=open_ticket
                )
            )
        await asyncio.shield(self._flush_task)

    async def _teardown_voice(self) -> None:
        voice_client = self.voice_client
        if voice_client is None:
            # Cancelled mid-connect: discord.py may already have registered the connection.
            voice_client = getattr(self.guild, "voice_client", None)
            channel_id = getattr(getattr(voice_client, "channel", None), "id", None)
            if voice_client is None or channel_id != getattr(self.channel, "id", None):
                return
        if voice_client.is_playing():
            voice_client.stop()
        if voice_client.is_listening():
            voice_client.stop_listening()
        if voice_client.is_connected():
            try:
                await voice_client.disconnect(force=True)
            except (discord.ClientException, discord.HTTPException) as exc:
                self._logger.warning("session.disconnect_failed", error=str(exc))

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        self._logger.debug("session.state_changed", previous=self._state.value, state=state.value)
        self._state = state


class SessionRegistry:
    """Active sessions keyed by voice channel id."""

    def __init__(self, services: SessionServices) -> None:
        self._services = services
        self._sessions: dict[int, VoiceSession] = {}
        self._logger = get_logger(__name__, service_name="helpdesk")

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, channel_id: object) -> bool:
        return channel_id in self._sessions

    def get(self, channel_id: int) -> VoiceSession | None:
        return self._sessions.get(channel_id)

    def open(self, member: Any, channel: Any, *, persona: Persona) -> VoiceSession | None:
        """Start a session in ``channel`` for ``member`` unless one is running."""
        if channel.id in self._sessions:
            self._logger.info("session.already_active", channel_id=channel.id, member_id=member.id)
            return None
        session = VoiceSession(
            channel=channel,
            member=member,
            persona=persona,
            services=self._services,
            on_terminated=self._remove,
        )
        self._sessions[channel.id] = session
        self._logger.info(
            "session.started",
            correlation_id=session.id,
            channel_id=channel.id,
            member_id=member.id,
        )
        session.start()
        return session

    async def handle_voice_state(
        self,
        member: Any,
        before: Any,
        after: Any,
        *,
        bot_user_id: int | None,
    ) -> None:
        """End sessions whose channel emptied or whose connection was dropped."""
        left = before.channel
        if left is None or (after.channel is not None and after.channel.id == left.id):
            return
        session = self._sessions.get(left.id)
        if session is None or session.ending:
            return
        if member.id == bot_user_id:
            await session.end("bot_disconnected")
        elif not any(not m.bot for m in left.members):
            await session.end("channel_empty")

    async def close_all(self, reason: str = "shutdown") -> None:
        sessions = list(self._sessions.values())
        if sessions:
            await asyncio.gather(*(session.end(reason) for session in sessions))

    def _remove(self, session: VoiceSession) -> None:
        if self._sessions.get(session.channel.id) is session:
            del self._sessions[session.channel.id]


__all__ = [
    "Route",
    "SessionRegistry",
    "SessionServices",
    "SessionState",
    "VoiceSession",
    "normalize_phrase",
    "route_utterance",
]
