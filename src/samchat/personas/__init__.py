"""Personas: named system-prompt profiles a conversation runs under."""

from .errors import (
    BuiltinPersonaError,
    PersonaError,
    PersonaLimitError,
    PersonaParseError,
    PersonaValidationError,
)
from .models import (
    Creativity,
    Formality,
    Persona,
    PersonaDefinition,
    PersonaKind,
    Tone,
    ToneParams,
)
from .parser import dump_persona, parse_persona_content, parse_persona_file
from .prompts import generate_custom_prompt
from .registry import (
    BUILTIN_PERSONAS,
    DEFAULT_PERSONA_ID,
    MAX_CUSTOM_PERSONAS,
    PersonaRegistry,
)

__all__ = [
    "BUILTIN_PERSONAS",
    "BuiltinPersonaError",
    "Creativity",
    "DEFAULT_PERSONA_ID",
    "Formality",
    "MAX_CUSTOM_PERSONAS",
    "Persona",
    "PersonaDefinition",
    "PersonaError",
    "PersonaKind",
    "PersonaLimitError",
    "PersonaParseError",
    "PersonaRegistry",
    "PersonaValidationError",
    "Tone",
    "ToneParams",
    "dump_persona",
    "generate_custom_prompt",
    "parse_persona_content",
    "parse_persona_file",
]
