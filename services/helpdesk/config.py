"""Configuration sections for the voice helpdesk bot."""

from __future__ import annotations

from dataclasses import dataclass

from services.common.config import (
    BaseConfig,
    FieldDefinition,
    LoggingConfig,
    create_field_definition,
    load_config_from_env,
    validate_phrases,
    validate_snowflake,
    validate_url,
)


DEFAULT_PERSONA = (
    "You are {bot_name}, a friendly voice support assistant for the "
    "{server_name} Discord server. You are speaking with a member over a voice "
    "call, so answer in short, plain sentences without markdown, lists or "
    "links. If you cannot solve the problem, tell the member they can say "
    '"I need higher support" to open a ticket with the human support team.'
)

DEFAULT_SUMMARY_INSTRUCTION = (
    "Summarize the following support call transcript for a human support agent. "
    "State the member's problem, what was already tried, and any details the "
    "agent needs to follow up. Keep it under 150 words."
)

DEFAULT_ESCALATION_QUESTIONS = [
    "Okay, I will open a ticket for our support team. In a few sentences, what problem are you having?",
    "What have you already tried to fix it?",
    "Is there anything else our support team should know?",
]


def validate_template(template: str) -> bool:
    """Templates may only use the {bot_name} and {server_name} placeholders."""
    try:
        template.format(bot_name="", server_name="")
    except (AttributeError, IndexError, KeyError, ValueError):
        return False
    return True


class DiscordConfig(BaseConfig):
    """Discord bot configuration."""

    @classmethod
    def get_field_definitions(cls) -> list[FieldDefinition]:
        return [
            create_field_definition(
                name="token",
                field_type=str,
                required=True,
                description="Discord bot token",
                env_var="DISCORD_BOT_TOKEN",
            ),
            create_field_definition(
                name="review_channel_id",
                field_type=int,
                required=True,
                description="Text channel that receives transcripts and tickets",
                env_var="HELP_TICKET_CHANNEL_ID",
                validator=validate_snowflake,
            ),
            create_field_definition(
                name="help_voice_channel_id",
                field_type=int,
                default=0,
                description="Voice channel that starts a session on join (0 disables)",
                env_var="HELP_VOICE_CHANNEL_ID",
                validator=validate_snowflake,
            ),
            create_field_definition(
                name="intents",
                field_type=list,
                default=[
                    "guilds",
                    "members",
                    "voice_states",
                    "guild_messages",
                    "guild_reactions",
                    "message_content",
                ],
                description="Discord gateway intents",
                env_var="DISCORD_INTENTS",
            ),
            create_field_definition(
                name="voice_connect_timeout_seconds",
                field_type=float,
                default=15.0,
                description="Timeout for a voice connection attempt",
                min_value=1.0,
                max_value=300.0,
                env_var="DISCORD_VOICE_CONNECT_TIMEOUT",
            ),
        ]


class OpenAIConfig(BaseConfig):
    """Chat-completion and speech-to-text endpoint configuration."""

    @classmethod
    def get_field_definitions(cls) -> list[FieldDefinition]:
        return [
            create_field_definition(
                name="api_key",
                field_type=str,
                required=True,
                description="OpenAI API key",
                env_var="OPENAI_API_KEY",
            ),
            create_field_definition(
                name="base_url",
                field_type=str,
                default="https://api.openai.com/v1",
                description="Base URL of the OpenAI-compatible API",
                env_var="OPENAI_BASE_URL",
                validator=validate_url,
            ),
            create_field_definition(
                name="chat_model",
                field_type=str,
                default="gpt-4o-mini",
                description="Chat-completion model",
                env_var="OPENAI_CHAT_MODEL",
            ),
            create_field_definition(
                name="temperature",
                field_type=float,
                default=0.7,
                description="Sampling temperature for replies",
                min_value=0.0,
                max_value=2.0,
                env_var="OPENAI_TEMPERATURE",
            ),
            create_field_definition(
                name="transcription_model",
                field_type=str,
                default="whisper-1",
                description="Speech-to-text model",
                env_var="OPENAI_TRANSCRIPTION_MODEL",
            ),
            create_field_definition(
                name="transcription_language",
                field_type=str,
                default="en",
                description="Language hint sent with transcription uploads",
                env_var="OPENAI_TRANSCRIPTION_LANGUAGE",
            ),
            create_field_definition(
                name="request_timeout_seconds",
                field_type=float,
                default=60.0,
                description="HTTP timeout for chat and transcription calls",
                min_value=1.0,
                max_value=600.0,
                env_var="OPENAI_TIMEOUT",
            ),
        ]


class ElevenLabsConfig(BaseConfig):
    """Text-to-speech endpoint configuration."""

    @classmethod
    def get_field_definitions(cls) -> list[FieldDefinition]:
        return [
            create_field_definition(
                name="api_key",
                field_type=str,
                required=True,
                description="ElevenLabs API key",
                env_var="ELEVEN_LABS_API_KEY",
            ),
            create_field_definition(
                name="voice_id",
                field_type=str,
                required=True,
                description="ElevenLabs voice identifier",
                env_var="ELEVEN_LABS_VOICE_ID",
            ),
            create_field_definition(
                name="base_url",
                field_type=str,
                default="https://api.elevenlabs.io/v1",
                description="Base URL of the ElevenLabs API",
                env_var="ELEVEN_LABS_BASE_URL",
                validator=validate_url,
            ),
            create_field_definition(
                name="request_timeout_seconds",
                field_type=float,
                default=60.0,
                description="HTTP timeout for synthesis calls",
                min_value=1.0,
                max_value=600.0,
                env_var="ELEVEN_LABS_TIMEOUT",
            ),
        ]


class AudioConfig(BaseConfig):
    """Recording and scratch-file configuration."""

    @classmethod
    def get_field_definitions(cls) -> list[FieldDefinition]:
        return [
            create_field_definition(
                name="scratch_dir",
                field_type=str,
                default="audio",
                description="Directory for temporary recordings and synthesized speech",
                env_var="AUDIO_SCRATCH_DIR",
            ),
            create_field_definition(
                name="listen_window_seconds",
                field_type=float,
                default=5.0,
                description="Wall-clock length of one recorded utterance",
                min_value=0.1,
                max_value=60.0,
                env_var="AUDIO_LISTEN_WINDOW_SECONDS",
            ),
            create_field_definition(
                name="min_recording_seconds",
                field_type=float,
                default=1.0,
                description="Recordings shorter than this are padded with silence",
                min_value=0.0,
                max_value=30.0,
                env_var="AUDIO_MIN_RECORDING_SECONDS",
            ),
            create_field_definition(
                name="silence_pad_seconds",
                field_type=float,
                default=10.0,
                description="Length of the silence track appended to short recordings",
                min_value=0.1,
                max_value=60.0,
                env_var="AUDIO_SILENCE_PAD_SECONDS",
            ),
            create_field_definition(
                name="sample_rate",
                field_type=int,
                default=48000,
                description="Sample rate of received voice PCM",
                choices=[16000, 44100, 48000],
                env_var="AUDIO_SAMPLE_RATE",
            ),
            create_field_definition(
                name="channels",
                field_type=int,
                default=2,
                description="Channel count of received voice PCM",
                choices=[1, 2],
                env_var="AUDIO_CHANNELS",
            ),
        ]


class ConversationConfig(BaseConfig):
    """Persona, fixed lines, routing phrases and transcript settings."""

    @classmethod
    def get_field_definitions(cls) -> list[FieldDefinition]:
        return [
            create_field_definition(
                name="bot_name",
                field_type=str,
                default="",
                description="Name used in the persona and greeting (defaults to the Discord username)",
                env_var="BOT_NAME",
            ),
            create_field_definition(
                name="persona_template",
                field_type=str,
                default=DEFAULT_PERSONA,
                description="System prompt template; {bot_name} and {server_name} are substituted",
                env_var="PERSONA_TEMPLATE",
                validator=validate_template,
            ),
            create_field_definition(
                name="greeting_template",
                field_type=str,
                default="Hello, I'm {bot_name}. How can I help you today?",
                description="Welcome line played when a session starts",
                env_var="GREETING_MESSAGE",
                validator=validate_template,
            ),
            create_field_definition(
                name="refusal_message",
                field_type=str,
                default="Sorry, I can't help with that. Is there anything else I can do for you?",
                description="Line played when an utterance matches the block list",
                env_var="REFUSAL_MESSAGE",
            ),
            create_field_definition(
                name="apology_message",
                field_type=str,
                default="Sorry, I'm having trouble answering right now. Could you say that again?",
                description="Reply used when the chat-completion call fails",
                env_var="APOLOGY_MESSAGE",
            ),
            create_field_definition(
                name="goodbye_message",
                field_type=str,
                default="Thanks. I've opened a ticket and someone from our support team will follow up soon. Goodbye!",
                description="Line played after a ticket has been opened",
                env_var="GOODBYE_MESSAGE",
            ),
            create_field_definition(
                name="summary_instruction",
                field_type=str,
                default=DEFAULT_SUMMARY_INSTRUCTION,
                description="Instruction prepended to transcripts sent for summarization",
                env_var="SUMMARY_INSTRUCTION",
            ),
            create_field_definition(
                name="summary_unavailable_message",
                field_type=str,
                default="Summary unavailable.",
                description="Ticket body used when summarization fails",
                env_var="SUMMARY_UNAVAILABLE_MESSAGE",
            ),
            create_field_definition(
                name="escalation_questions",
                field_type=list,
                default=list(DEFAULT_ESCALATION_QUESTIONS),
                description="Follow-up questions asked before opening a ticket ('|' separated)",
                env_var="ESCALATION_QUESTIONS",
                separator="|",
                validator=validate_phrases,
            ),
            create_field_definition(
                name="end_phrases",
                field_type=list,
                default=["end conversation"],
                description="Phrases that end the session",
                env_var="END_PHRASES",
                validator=validate_phrases,
            ),
            create_field_definition(
                name="escalation_phrases",
                field_type=list,
                default=["i need higher support", "i need a human"],
                description="Phrases that open a support ticket",
                env_var="ESCALATION_PHRASES",
                validator=validate_phrases,
            ),
            create_field_definition(
                name="blocked_words_path",
                field_type=str,
                default="",
                description="Line-oriented block list file (empty disables the filter)",
                env_var="BLOCKED_WORDS_PATH",
            ),
            create_field_definition(
                name="transcripts_dir",
                field_type=str,
                default="transcripts",
                description="Directory for durable transcript files",
                env_var="TRANSCRIPTS_DIR",
            ),
            create_field_definition(
                name="segment_max_length",
                field_type=int,
                default=200,
                description="Maximum characters per synthesized reply segment",
                min_value=20,
                max_value=5000,
                env_var="RESPONSE_SEGMENT_MAX_LENGTH",
            ),
        ]


@dataclass(slots=True)
class BotConfig:
    """All configuration sections for one bot process."""

    discord: DiscordConfig
    openai: OpenAIConfig
    elevenlabs: ElevenLabsConfig
    audio: AudioConfig
    conversation: ConversationConfig
    logging: LoggingConfig


def load_config() -> BotConfig:
    """Load every section from the environment.

    Raises:
        ConfigError: If a required setting is missing or invalid
    """
    return BotConfig(
        discord=load_config_from_env(DiscordConfig),
        openai=load_config_from_env(OpenAIConfig),
        elevenlabs=load_config_from_env(ElevenLabsConfig),
        audio=load_config_from_env(AudioConfig),
        conversation=load_config_from_env(ConversationConfig),
        logging=load_config_from_env(LoggingConfig),
    )


__all__ = [
    "AudioConfig",
    "BotConfig",
    "ConversationConfig",
    "DiscordConfig",
    "ElevenLabsConfig",
    "OpenAIConfig",
    "load_config",
    "validate_template",
]
