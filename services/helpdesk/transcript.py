"""Conversation transcript types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Chat-completion role of a turn."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class Turn:
    """One role-tagged unit of conversation text."""

    role: Role
    speaker: str
    text: str
    index: int

    def as_message(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.text}


class Transcript:
    """Append-only, ordered list of turns for one session."""

    def __init__(self) -> None:
        self._turns: list[Turn] = []

    def __len__(self) -> int:
        return len(self._turns)

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    @property
    def seeded(self) -> bool:
        """True once the system persona turn has been added."""
        return any(turn.role is Role.SYSTEM for turn in self._turns)

    def append(self, role: Role, speaker: str, text: str) -> Turn:
        turn = Turn(role=role, speaker=speaker, text=text, index=len(self._turns))
        self._turns.append(turn)
        return turn

    def messages(self) -> list[dict[str, str]]:
        """Turns in chat-completion message format, in order."""
        return [turn.as_message() for turn in self._turns]

    def render(self) -> str:
        """Plain-text artifact: one ``speaker: text`` line per spoken turn."""
        return "\n".join(
            f"{turn.speaker}: {turn.text}"
            for turn in self._turns
            if turn.role is not Role.SYSTEM
        )

    def has_dialogue(self) -> bool:
        return any(turn.role is not Role.SYSTEM for turn in self._turns)

    def clear(self) -> None:
        self._turns.clear()


__all__ = ["Role", "Transcript", "Turn"]
