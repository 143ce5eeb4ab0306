"""Transcript flushing and reviewable support tickets.

A flush writes the session transcript to ``transcript-<session id>.txt``,
posts it to the review channel and, on escalation, posts a ticket card with
a generated summary. Ticket state lives on the posted embed itself, so the
reaction handler reads it back from Discord instead of keeping it in memory.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import discord

from services.common.structured_logging import get_logger

from .dialogue import DialogueEngine
from .transcript import Transcript


TICKET_TITLE = "Support Ticket"
CLAIM_EMOJI = "\N{WHITE HEAVY CHECK MARK}"
DISMISS_EMOJI = "\N{CROSS MARK}"
STATUS_FIELD = "Status"
_CLAIMED_PREFIX = "Claimed by "
_SESSION_PREFIX = "Session "


class ClaimStatus(str, Enum):
    UNCLAIMED = "unclaimed"
    CLAIMED = "claimed"
    DISMISSED = "dismissed"


@dataclass(slots=True)
class Ticket:
    """A support ticket as shown on its review card."""

    summary: str
    status: ClaimStatus = ClaimStatus.UNCLAIMED
    claimant: str | None = None
    session_id: str | None = None

    def claim(self, display_name: str) -> bool:
        """Record the first claimant. Returns False if already claimed or dismissed."""
        if self.status is not ClaimStatus.UNCLAIMED:
            return False
        self.status = ClaimStatus.CLAIMED
        self.claimant = display_name
        return True

    def to_embed(self) -> discord.Embed:
        embed = discord.Embed(
            title=TICKET_TITLE,
            description=self.summary,
            colour=discord.Colour.green()
            if self.status is ClaimStatus.CLAIMED
            else discord.Colour.orange(),
        )
        status = (
            f"{_CLAIMED_PREFIX}{self.claimant}"
            if self.status is ClaimStatus.CLAIMED
            else "Unclaimed"
        )
        embed.add_field(name=STATUS_FIELD, value=status, inline=False)
        if self.session_id:
            embed.set_footer(text=f"{_SESSION_PREFIX}{self.session_id}")
        return embed

    @classmethod
    def from_embed(cls, embed: discord.Embed) -> Ticket | None:
        """Rebuild a ticket from a posted card, or None if it is not one."""
        if embed.title != TICKET_TITLE:
            return None
        ticket = cls(summary=embed.description or "")
        for field in embed.fields:
            value = field.value or ""
            if field.name == STATUS_FIELD and value.startswith(_CLAIMED_PREFIX):
                ticket.status = ClaimStatus.CLAIMED
                ticket.claimant = value[len(_CLAIMED_PREFIX):]
        footer = embed.footer.text if embed.footer else None
        if footer and footer.startswith(_SESSION_PREFIX):
            ticket.session_id = footer[len(_SESSION_PREFIX):]
        return ticket


class TicketPublisher:
    """Posts transcripts and tickets to the review channel and handles reactions."""

    def __init__(
        self,
        client: discord.Client,
        dialogue: DialogueEngine,
        *,
        review_channel_id: int,
        transcripts_dir: str | Path,
    ) -> None:
        self._client = client
        self._dialogue = dialogue
        self._review_channel_id = review_channel_id
        self._transcripts_dir = Path(transcripts_dir)
        self._logger = get_logger(__name__, service_name="helpdesk")
        # message id -> (lock, number of handlers holding or waiting on it)
        self._message_locks: dict[int, tuple[asyncio.Lock, int]] = {}

    async def flush(
        self,
        transcript: Transcript,
        *,
        session_id: str,
        open_ticket: bool,
    ) -> None:
        """Persist and post ``transcript``, optionally opening a ticket.

        Discord and file-system failures are logged; the transcript is cleared
        whatever happens so a flush is never repeated with the same turns.
        """
        logger = self._logger.bind(correlation_id=session_id)
        try:
            if not transcript.has_dialogue() and not open_ticket:
                logger.info("transcript.empty_skipped")
                return

            text = transcript.render()
            path = await self._write_transcript(text, session_id, logger)
            channel = await self._review_channel()
            if channel is None:
                logger.error("transcript.review_channel_missing", channel_id=self._review_channel_id)
                return

            if path is not None:
                try:
                    await channel.send(
                        content=f"Transcript for session {session_id}",
                        file=discord.File(str(path), filename=path.name),
                    )
                    logger.info("transcript.posted", path=str(path), turns=len(transcript))
                except discord.HTTPException as exc:
                    logger.error("transcript.post_failed", error=str(exc), status=exc.status)

            if open_ticket:
                await self._open_ticket(channel, text, session_id, logger)
        finally:
            transcript.clear()

    async def handle_reaction(self, payload: discord.RawReactionActionEvent) -> None:
        """Apply a claim or dismiss reaction to a ticket card."""
        emoji = str(payload.emoji)
        if emoji not in (CLAIM_EMOJI, DISMISS_EMOJI):
            return
        if payload.channel_id != self._review_channel_id:
            return
        me = self._client.user
        if me is not None and payload.user_id == me.id:
            return
        member = payload.member
        if member is None or member.bot:
            return

        channel = await self._review_channel()
        if channel is None:
            return
        # Reactions on one card are applied one at a time so the first claim wins.
        async with self._message_lock(payload.message_id):
            await self._apply_reaction(channel, payload.message_id, emoji, member)

    async def _apply_reaction(self, channel: Any, message_id: int, emoji: str, member: Any) -> None:
        me = self._client.user
        try:
            message = await channel.fetch_message(message_id)
        except discord.HTTPException as exc:
            self._logger.warning(
                "ticket.message_fetch_failed", message_id=message_id, error=str(exc)
            )
            return

        if me is None or message.author.id != me.id or not message.embeds:
            return
        ticket = Ticket.from_embed(message.embeds[0])
        if ticket is None:
            return

        logger = self._logger.bind(
            correlation_id=ticket.session_id, message_id=message.id, member_id=member.id
        )
        try:
            if emoji == CLAIM_EMOJI:
                await self._claim(message, ticket, member, logger)
            else:
                await self._dismiss(channel, message, ticket, member, logger)
        except discord.HTTPException as exc:
            logger.error("ticket.update_failed", emoji=emoji, error=str(exc), status=exc.status)

    @asynccontextmanager
    async def _message_lock(self, message_id: int) -> AsyncIterator[None]:
        lock, users = self._message_locks.get(message_id, (asyncio.Lock(), 0))
        self._message_locks[message_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._message_locks[message_id]
            if users == 1:
                del self._message_locks[message_id]
            else:
                self._message_locks[message_id] = (lock, users - 1)

    async def _claim(self, message: Any, ticket: Ticket, member: Any, logger: Any) -> None:
        if not ticket.claim(member.display_name):
            logger.info("ticket.claim_ignored", claimant=ticket.claimant)
            return
        await message.edit(embed=ticket.to_embed())
        logger.info("ticket.claimed", claimant=ticket.claimant)

    async def _dismiss(
        self, channel: Any, message: Any, ticket: Ticket, member: Any, logger: Any
    ) -> None:
        if not channel.permissions_for(member).manage_messages:
            logger.info("ticket.dismiss_denied")
            return
        await message.delete()
        ticket.status = ClaimStatus.DISMISSED
        logger.info("ticket.dismissed", previous_claimant=ticket.claimant)

    async def _open_ticket(self, channel: Any, text: str, session_id: str, logger: Any) -> None:
        summary = await self._dialogue.summarize(text, correlation_id=session_id)
        ticket = Ticket(summary=summary, session_id=session_id)
        try:
            message = await channel.send(embed=ticket.to_embed())
            await message.add_reaction(CLAIM_EMOJI)
            await message.add_reaction(DISMISS_EMOJI)
        except discord.HTTPException as exc:
            logger.error("ticket.post_failed", error=str(exc), status=exc.status)
            return
        logger.info("ticket.opened", message_id=message.id)

    async def _write_transcript(self, text: str, session_id: str, logger: Any) -> Path | None:
        path = self._transcripts_dir / f"transcript-{session_id}.txt"

        def _write() -> None:
            self._transcripts_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            logger.error("transcript.write_failed", path=str(path), error=str(exc))
            return None
        logger.info("transcript.written", path=str(path))
        return path

    async def _review_channel(self) -> Any | None:
        channel = self._client.get_channel(self._review_channel_id)
        if channel is not None:
            return channel
        try:
            return await self._client.fetch_channel(self._review_channel_id)
        except discord.HTTPException as exc:
            self._logger.error(
                "transcript.review_channel_fetch_failed",
                channel_id=self._review_channel_id,
                error=str(exc),
            )
            return None


__all__ = [
    "CLAIM_EMOJI",
    "DISMISS_EMOJI",
    "TICKET_TITLE",
    "ClaimStatus",
    "Ticket",
    "TicketPublisher",
]
