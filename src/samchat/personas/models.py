"""Persona data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path


class PersonaKind(Enum):
    """Where a persona comes from."""

    BUILTIN = "builtin"
    CUSTOM = "custom"


class Tone(Enum):
    CASUAL = "casual"
    PROFESSIONAL = "professional"
    ENTHUSIASTIC = "enthusiastic"


class Creativity(Enum):
    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    CREATIVE = "creative"


class Formality(Enum):
    FORMAL = "formal"
    INFORMAL = "informal"
    MIXED = "mixed"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ToneParams:
    """The three enumerated knobs a custom persona is built from."""

    tone: Tone = Tone.CASUAL
    creativity: Creativity = Creativity.BALANCED
    formality: Formality = Formality.INFORMAL


@dataclass(frozen=True)
class PersonaDefinition:
    """User input for creating a custom persona.

    If ``system_prompt`` is empty the prompt is generated from the tone
    parameters, name and description.
    """

    name: str
    description: str = ""
    system_prompt: str | None = None
    tone: Tone | str = Tone.CASUAL
    creativity: Creativity | str = Creativity.BALANCED
    formality: Formality | str = Formality.INFORMAL


@dataclass(frozen=True)
class Persona:
    """A named system-prompt profile a conversation runs under.

    Attributes:
        id: Stable identifier referenced by sessions.
        name: Display name.
        description: Short human description.
        kind: Built-in or user-authored.
        system_prompt: Literal prompt; None means generated from tone_params.
        tone_params: Knobs used to generate the prompt for custom personas.
        created_at: ISO timestamp of creation.
        updated_at: ISO timestamp of the last explicit edit.
        path: File the persona was loaded from, if any.
    """

    id: str
    name: str
    description: str = ""
    kind: PersonaKind = PersonaKind.CUSTOM
    system_prompt: str | None = None
    tone_params: ToneParams | None = None
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)
    path: Path | None = None

    @property
    def is_builtin(self) -> bool:
        return self.kind is PersonaKind.BUILTIN

    @property
    def prompt(self) -> str:
        """The persona's system prompt, generating it if needed."""
        if self.system_prompt:
            return self.system_prompt

        from .prompts import generate_custom_prompt

        params = self.tone_params or ToneParams()
        return generate_custom_prompt(
            params.tone, params.creativity, params.formality, self.name, self.description
        )
