"""Discord client glue for the voice helpdesk."""

from __future__ import annotations

import asyncio
from contextlib import suppress
from typing import Any

import discord
from discord.ext import voice_recv

from services.common.structured_logging import get_logger

from .config import BotConfig, DiscordConfig
from .content_filter import load_blocked_words
from .dialogue import DialogueEngine, Persona
from .recorder import UtteranceRecorder
from .scratch import ScratchDirectory
from .session import SessionRegistry, SessionServices, VoiceSession
from .tickets import TicketPublisher
from .transcription import TranscriptionClient
from .tts import SpeechSynthesizer


JOINED_REPLY = "Joined your voice channel!"
NOT_IN_VOICE_REPLY = "You need to join a voice channel first!"
ALREADY_ACTIVE_REPLY = "I'm already helping someone in that voice channel."


class HelpdeskBot(discord.Client):
    """Discord client that starts voice support sessions and routes events to them."""

    def __init__(self, config: BotConfig) -> None:
        intents = self._build_intents(config.discord)
        super().__init__(intents=intents)
        self.config = config
        self._logger = get_logger(__name__, service_name="helpdesk")
        self.scratch = ScratchDirectory(config.audio.scratch_dir)
        self.dialogue = DialogueEngine(config.openai, config.conversation)
        self.transcriber = TranscriptionClient(config.openai)
        self.synthesizer = SpeechSynthesizer(config.elevenlabs, self.scratch)
        self.publisher = TicketPublisher(
            self,
            self.dialogue,
            review_channel_id=config.discord.review_channel_id,
            transcripts_dir=config.conversation.transcripts_dir,
        )
        self.sessions = SessionRegistry(
            SessionServices(
                connect=self._connect_voice,
                recorder=UtteranceRecorder(config.audio, self.scratch),
                transcriber=self.transcriber,
                synthesizer=self.synthesizer,
                dialogue=self.dialogue,
                publisher=self.publisher,
                conversation=config.conversation,
                blocked_words=load_blocked_words(config.conversation.blocked_words_path),
            )
        )

    async def on_ready(self) -> None:
        self._logger.info(
            "discord.ready",
            user=str(self.user),
            guilds=[guild.id for guild in self.guilds],
        )
        await asyncio.to_thread(self.scratch.reset)

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or self.user is None:
            return
        if not any(mention.id == self.user.id for mention in message.mentions):
            return

        author = message.author
        voice = getattr(author, "voice", None)
        if voice is None or voice.channel is None:
            await self._reply(message, NOT_IN_VOICE_REPLY)
            return

        session = self.start_session(author, voice.channel)
        await self._reply(message, JOINED_REPLY if session is not None else ALREADY_ACTIVE_REPLY)

    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        bot_user_id = self.user.id if self.user is not None else None
        await self.sessions.handle_voice_state(member, before, after, bot_user_id=bot_user_id)

        help_channel_id = self.config.discord.help_voice_channel_id
        if member.bot or not help_channel_id or after.channel is None:
            return
        if after.channel.id != help_channel_id:
            return
        if before.channel is not None and before.channel.id == help_channel_id:
            return
        self._logger.info("discord.help_channel_joined", member_id=member.id, channel_id=help_channel_id)
        self.start_session(member, after.channel)

    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        await self.publisher.handle_reaction(payload)

    def start_session(self, member: Any, channel: Any) -> VoiceSession | None:
        return self.sessions.open(member, channel, persona=self._persona_for(channel))

    async def close(self) -> None:
        await self.sessions.close_all()
        await super().close()
        await self.dialogue.close()
        await self.transcriber.close()
        await self.synthesizer.close()

    async def _connect_voice(self, channel: Any) -> Any:
        return await channel.connect(
            cls=voice_recv.VoiceRecvClient,
            timeout=self.config.discord.voice_connect_timeout_seconds,
            self_deaf=False,
        )

    def _persona_for(self, channel: Any) -> Persona:
        bot_name = self.config.conversation.bot_name
        if not bot_name and self.user is not None:
            bot_name = self.user.display_name
        guild = getattr(channel, "guild", None)
        return Persona(bot_name=bot_name or "Helpdesk", server_name=getattr(guild, "name", "") or "")

    async def _reply(self, message: discord.Message, text: str) -> None:
        try:
            await message.reply(text)
        except discord.HTTPException as exc:
            self._logger.warning("discord.reply_failed", error=str(exc), channel_id=message.channel.id)

    @staticmethod
    def _build_intents(config: DiscordConfig) -> discord.Intents:
        intents = discord.Intents.none()
        intent_aliases = {
            "guild_voice_states": "voice_states",
        }
        for raw_name in config.intents:
            name = intent_aliases.get(raw_name, raw_name)
            if hasattr(intents, name):
                setattr(intents, name, True)
        return intents


async def run_bot(config: BotConfig) -> None:
    """Run the bot until the gateway connection closes."""

    bot = HelpdeskBot(config)
    bot_task = asyncio.create_task(bot.start(config.discord.token))
    try:
        await bot_task
    finally:
        await bot.close()
        if not bot_task.done():
            bot_task.cancel()
            with suppress(asyncio.CancelledError):
                await bot_task


__all__ = ["HelpdeskBot", "run_bot"]
