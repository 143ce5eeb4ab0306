"""Test fixtures for helpdesk service tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Generator
from pathlib import Path
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest

from services.common.config import LoggingConfig
from services.helpdesk.config import (
    AudioConfig,
    ConversationConfig,
    DiscordConfig,
    ElevenLabsConfig,
    OpenAIConfig,
)
from services.helpdesk.dialogue import Persona
from services.helpdesk.recorder import RecordingHandle
from services.helpdesk.scratch import ScratchDirectory, ScratchFile
from services.helpdesk.session import SessionServices
from services.helpdesk.tickets import TicketPublisher
from services.helpdesk.transcript import Role, Transcript


_CONFIG_CLASSES = (
    AudioConfig,
    ConversationConfig,
    DiscordConfig,
    ElevenLabsConfig,
    LoggingConfig,
    OpenAIConfig,
)


@pytest.fixture(autouse=True)
def clean_config_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer environment variables out of config objects under test."""
    for config_class in _CONFIG_CLASSES:
        for field_def in config_class.get_field_definitions():
            if field_def.env_var:
                monkeypatch.delenv(field_def.env_var, raising=False)


@pytest.fixture
def openai_config() -> OpenAIConfig:
    return OpenAIConfig(api_key="test-openai-key", base_url="https://api.openai.test/v1")


@pytest.fixture
def elevenlabs_config() -> ElevenLabsConfig:
    return ElevenLabsConfig(
        api_key="test-eleven-key",
        voice_id="voice-123",
        base_url="https://api.elevenlabs.test/v1",
    )


@pytest.fixture
def audio_config() -> AudioConfig:
    return AudioConfig(listen_window_seconds=0.1, min_recording_seconds=1.0, silence_pad_seconds=2.0)


@pytest.fixture
def conversation_config() -> ConversationConfig:
    return ConversationConfig(
        bot_name="Helper",
        escalation_questions=["What is the problem?", "What have you tried?"],
        segment_max_length=40,
    )


@pytest.fixture
def persona() -> Persona:
    return Persona(bot_name="Helper", server_name="Test Server")


@pytest.fixture
def scratch(tmp_path: Path) -> ScratchDirectory:
    return ScratchDirectory(tmp_path / "audio")


class FakeVoiceClient:
    """Stand-in for a connected ``VoiceRecvClient``."""

    def __init__(self) -> None:
        self.connected = True
        self.playing = False
        self.listening = False
        self.sink: Any = None
        self.after: Callable[[Exception | None], None] | None = None
        self.played: list[Any] = []
        self.disconnect = AsyncMock(side_effect=self._disconnect)
        self.stop = Mock(side_effect=self._stop)
        self.stop_listening = Mock(side_effect=self._stop_listening)

    def is_connected(self) -> bool:
        return self.connected

    def is_playing(self) -> bool:
        return self.playing

    def is_listening(self) -> bool:
        return self.listening

    def listen(self, sink: Any, *, after: Callable[[Exception | None], None] | None = None) -> None:
        self.sink = sink
        self.after = after
        self.listening = True

    def play(self, source: Any, *, after: Callable[[Exception | None], None] | None = None) -> None:
        self.played.append(source)
        self.playing = True
        self.after = after

    async def _disconnect(self, *, force: bool = False) -> None:
        self.connected = False

    def _stop(self) -> None:
        self.playing = False

    def _stop_listening(self) -> None:
        self.listening = False


@pytest.fixture
def voice_client() -> FakeVoiceClient:
    return FakeVoiceClient()


def _make_member(member_id: int = 1001, name: str = "Caller", *, bot: bool = False) -> SimpleNamespace:
    return SimpleNamespace(id=member_id, display_name=name, bot=bot)


def _make_channel(channel_id: int = 500, members: list[Any] | None = None) -> SimpleNamespace:
    return SimpleNamespace(
        id=channel_id,
        members=members if members is not None else [],
        guild=SimpleNamespace(id=42, name="Test Server"),
    )


@pytest.fixture
def make_member() -> Callable[..., SimpleNamespace]:
    """Factory for member stand-ins (id, display_name, bot)."""
    return _make_member


@pytest.fixture
def make_channel() -> Callable[..., SimpleNamespace]:
    """Factory for voice channel stand-ins with a member list."""
    return _make_channel


class ScriptedTranscriber:
    """Returns queued utterances, then waits until cancelled."""

    def __init__(self, utterances: list[str | None] | None = None) -> None:
        self.utterances = list(utterances or [])
        self.calls = 0
        self.waiting = asyncio.Event()

    async def transcribe(self, path: Path, *, correlation_id: str | None = None) -> str | None:
        self.calls += 1
        if self.utterances:
            return self.utterances.pop(0)
        self.waiting.set()
        await asyncio.Event().wait()
        return None


class FakeRecorder:
    """Hands out empty scratch recordings; can be told to fail."""

    def __init__(self, scratch: ScratchDirectory) -> None:
        self.scratch = scratch
        self.handles: list[RecordingHandle] = []
        self.errors: list[BaseException] = []

    async def record(self, voice_client: Any, member: Any, *, correlation_id: str | None = None) -> RecordingHandle:
        if self.errors:
            raise self.errors.pop(0)
        path = self.scratch.path_for("utterance", ".wav")
        path.write_bytes(b"RIFF")
        handle = RecordingHandle(path, duration=1.0, padded=False)
        self.handles.append(handle)
        return handle


class FakeSynthesizer:
    """Writes a placeholder file per line, or fails for listed texts."""

    def __init__(self, scratch: ScratchDirectory, *, failing: set[str] | None = None) -> None:
        self.scratch = scratch
        self.failing = failing or set()
        self.spoken: list[str] = []

    async def synthesize(self, text: str, *, correlation_id: str | None = None) -> ScratchFile | None:
        self.spoken.append(text)
        if text in self.failing:
            return None
        path = self.scratch.path_for("tts", ".mp3")
        path.write_bytes(b"ID3")
        return ScratchFile(path)


class FakeDialogue:
    """Appends user and assistant turns the way the real engine does."""

    def __init__(self, reply: str = "Have you tried turning it off and on again?") -> None:
        self.reply = reply
        self.utterances: list[str] = []

    async def continue_conversation(
        self,
        transcript: Transcript,
        utterance: str,
        persona: Persona,
        *,
        speaker: str = "User",
        correlation_id: str | None = None,
    ) -> str:
        self.utterances.append(utterance)
        if not transcript.seeded:
            transcript.append(Role.SYSTEM, "system", "persona")
        transcript.append(Role.USER, speaker, utterance)
        transcript.append(Role.ASSISTANT, persona.bot_name, self.reply)
        return self.reply


@pytest.fixture
def fake_publisher() -> Mock:
    publisher = Mock(spec=TicketPublisher)
    publisher.flushed = []

    async def _flush(transcript: Transcript, *, session_id: str, open_ticket: bool) -> None:
        publisher.flushed.append((transcript.render(), open_ticket))
        transcript.clear()

    publisher.flush = AsyncMock(side_effect=_flush)
    return publisher


@pytest.fixture
def session_services(
    scratch: ScratchDirectory,
    conversation_config: ConversationConfig,
    voice_client: FakeVoiceClient,
    fake_publisher: Mock,
) -> Generator[SessionServices, None, None]:
    """Session collaborators backed by fakes; tweak attributes per test."""
    services = SessionServices(
        connect=AsyncMock(return_value=voice_client),
        recorder=FakeRecorder(scratch),  # type: ignore[arg-type]
        transcriber=ScriptedTranscriber(),  # type: ignore[arg-type]
        synthesizer=FakeSynthesizer(scratch),  # type: ignore[arg-type]
        dialogue=FakeDialogue(),  # type: ignore[arg-type]
        publisher=fake_publisher,
        conversation=conversation_config,
        blocked_words=["forbidden"],
        play=AsyncMock(return_value=True),
    )
    yield services
