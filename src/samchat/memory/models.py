"""Data models for the memory system."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class FactCategory(Enum):
    """What kind of thing a fact records about the user.

    The value doubles as the prefix token used in persisted fact strings
    (``"NAME: Alice"``).
    """

    EXPLICIT = "EXPLICIT"
    FOR_REFERENCE = "FOR REFERENCE"
    NAME = "NAME"
    AGE = "AGE"
    LOCATION = "LOCATION"
    JOB = "JOB"
    INTEREST = "INTEREST"
    PREFERENCE = "PREFERENCE"
    FAMILY = "FAMILY"
    SKILL = "SKILL"
    GOAL = "GOAL"

    @property
    def is_explicit(self) -> bool:
        """True for facts the user directly asked to keep."""
        return self in (FactCategory.EXPLICIT, FactCategory.FOR_REFERENCE)


# Longest prefixes first so "FOR REFERENCE" wins over shorter tokens.
_PREFIXES = sorted(FactCategory, key=lambda c: len(c.value), reverse=True)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def strip_prefix(text: str) -> tuple[FactCategory | None, str]:
    """Split a leading ``"<CATEGORY>: "`` token off a fact string.

    Returns:
        The category (None when no known prefix is present) and the bare text.
    """
    for category in _PREFIXES:
        token = f"{category.value}:"
        if text[: len(token)].upper() == token:
            return category, text[len(token):].strip()
    return None, text.strip()


@dataclass(frozen=True)
class MemoryFact:
    """A fact remembered about the user.

    Attributes:
        text: The fact content, without any category prefix.
        category: What kind of fact this is.
        created_at: When the fact was first recorded.
    """

    text: str
    category: FactCategory = FactCategory.EXPLICIT
    created_at: datetime = field(default_factory=_now)

    @property
    def key(self) -> str:
        """Deduplication key: case-insensitive text."""
        return self.text.strip().lower()

    def encode(self) -> str:
        """Encode as a flat ``"<CATEGORY>: text"`` string for persistence."""
        return f"{self.category.value}: {self.text}"

    @classmethod
    def decode(cls, raw: str, created_at: datetime | None = None) -> MemoryFact:
        """Decode a persisted fact string.

        Strings without a known prefix are treated as explicit facts, which
        is how hand-written entries were stored before categories existed.
        """
        category, text = strip_prefix(raw)
        return cls(
            text=text,
            category=category or FactCategory.EXPLICIT,
            created_at=created_at or _now(),
        )
