"""Component tests for the speech-synthesis and transcription clients."""

import asyncio
import json
from unittest.mock import patch

import httpx
import pytest

from services.helpdesk.transcription import TranscriptionClient
from services.helpdesk.tts import SpeechSynthesizer


@pytest.mark.component
@pytest.mark.asyncio
class TestSpeechSynthesizer:
    """ElevenLabs text-to-speech client."""

    async def test_writes_audio_to_scratch(self, elevenlabs_config, scratch):
        """Test a successful synthesis request."""
        seen = []

        def _handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"ID3audio")

        client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))
        synthesizer = SpeechSynthesizer(elevenlabs_config, scratch, client=client)

        audio = await synthesizer.synthesize("Hello there")

        assert audio is not None
        assert audio.path.read_bytes() == b"ID3audio"
        assert audio.path.parent == scratch.root
        assert str(seen[0].url) == "https://api.elevenlabs.test/v1/text-to-speech/voice-123"
        assert seen[0].headers["xi-api-key"] == "test-eleven-key"
        assert json.loads(seen[0].content) == {"text": "Hello there"}
        audio.cleanup()
        assert not audio.path.exists()

    @pytest.mark.parametrize(
        "response",
        [httpx.Response(401, json={"detail": "bad key"}), httpx.Response(200, content=b"")],
    )
    async def test_failure_returns_none(self, elevenlabs_config, scratch, response):
        """Test that error and empty responses yield None."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: response))
        synthesizer = SpeechSynthesizer(elevenlabs_config, scratch, client=client)

        assert await synthesizer.synthesize("Hello there") is None
        assert not scratch.root.exists() or list(scratch.root.iterdir()) == []

    async def test_transport_error_returns_none(self, elevenlabs_config, scratch):
        """Test that transport errors yield None."""
        def _fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(_fail))
        synthesizer = SpeechSynthesizer(elevenlabs_config, scratch, client=client)

        assert await synthesizer.synthesize("Hello there") is None

    async def test_blank_text_is_skipped(self, elevenlabs_config, scratch):
        """Test that blank text makes no request."""
        calls = []
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: calls.append(r) or httpx.Response(200, content=b"x"))
        )
        synthesizer = SpeechSynthesizer(elevenlabs_config, scratch, client=client)

        assert await synthesizer.synthesize("   ") is None
        assert calls == []

    async def test_audio_is_written_off_the_event_loop(self, elevenlabs_config, scratch):
        """Test that the synthesized body is written in a worker thread."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, content=b"ID3")))
        synthesizer = SpeechSynthesizer(elevenlabs_config, scratch, client=client)

        with patch("services.helpdesk.tts.asyncio.to_thread", wraps=asyncio.to_thread) as to_thread:
            audio = await synthesizer.synthesize("Hello there")

        assert audio is not None
        to_thread.assert_awaited_once_with(audio.path.write_bytes, b"ID3")


@pytest.mark.component
@pytest.mark.asyncio
class TestTranscriptionClient:
    """OpenAI speech-to-text client."""

    @pytest.fixture
    def wav_file(self, tmp_path):
        path = tmp_path / "utterance.wav"
        path.write_bytes(b"RIFF....WAVEfmt ")
        return path

    async def test_multipart_upload(self, openai_config, wav_file):
        """Test the transcription upload."""
        seen = []

        def _handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"text": "  my headset is broken "})

        session = httpx.AsyncClient(transport=httpx.MockTransport(_handler))
        client = TranscriptionClient(openai_config, session=session)

        text = await client.transcribe(wav_file)

        assert text == "my headset is broken"
        request = seen[0]
        assert str(request.url) == "https://api.openai.test/v1/audio/transcriptions"
        assert request.headers["Authorization"] == "Bearer test-openai-key"
        assert request.headers["Content-Type"].startswith("multipart/form-data")
        body = request.content
        assert b'name="model"' in body and b"whisper-1" in body
        assert b'name="language"' in body and b"en" in body
        assert b'filename="utterance.wav"' in body

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500, text="server error"),
            httpx.Response(200, json={"text": ""}),
            httpx.Response(200, json={}),
            httpx.Response(200, json=["unexpected"]),
        ],
    )
    async def test_no_usable_text_returns_none(self, openai_config, wav_file, response):
        """Test that failed and empty transcriptions yield None."""
        session = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: response))
        client = TranscriptionClient(openai_config, session=session)

        assert await client.transcribe(wav_file) is None

    async def test_missing_file_returns_none(self, openai_config, tmp_path):
        """Test transcribing a missing file."""
        session = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"text": "x"})))
        client = TranscriptionClient(openai_config, session=session)

        assert await client.transcribe(tmp_path / "missing.wav") is None

    async def test_context_manager_closes_owned_session(self, openai_config):
        """Test closing an owned client."""
        async with TranscriptionClient(openai_config) as client:
            session = client._session

        assert session is not None
        assert session.is_closed

    async def test_audio_is_read_off_the_event_loop(self, openai_config, wav_file):
        """Test that the recording is read in a worker thread."""
        session = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"text": "hi"})))
        client = TranscriptionClient(openai_config, session=session)

        with patch("services.helpdesk.transcription.asyncio.to_thread", wraps=asyncio.to_thread) as to_thread:
            assert await client.transcribe(wav_file) == "hi"

        to_thread.assert_awaited_once_with(wav_file.read_bytes)
