"""PersonaRegistry: built-in and custom personas, and prompt composition.

The registry handles:
- Lookup: resolving a persona id, falling back to the default persona
- Composition: persona prompt plus the remembered-facts block
- Management: creating, editing and deleting custom personas

Custom personas can be persisted as PERSONA.md files in a directory.
"""

import logging
import uuid
from dataclasses import replace
from pathlib import Path

from ..memory import MemoryFact, format_for_prompt
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
    now_iso,
)
from .parser import dump_persona, parse_persona_file
from .prompts import CORPORATE_PROMPT, SAM_PROMPT, generate_custom_prompt

logger = logging.getLogger(__name__)

DEFAULT_PERSONA_ID = "corporate"
MAX_CUSTOM_PERSONAS = 10

BUILTIN_PERSONAS: tuple[Persona, ...] = (
    Persona(
        id="sam",
        name="Sam",
        description="Sarcastic, loyal co-founder who talks like a Gen Z friend",
        kind=PersonaKind.BUILTIN,
        system_prompt=SAM_PROMPT,
        created_at="1970-01-01T00:00:00+00:00",
        updated_at="1970-01-01T00:00:00+00:00",
    ),
    Persona(
        id="corporate",
        name="Corporate",
        description="Formal, professional assistant for business use",
        kind=PersonaKind.BUILTIN,
        system_prompt=CORPORATE_PROMPT,
        created_at="1970-01-01T00:00:00+00:00",
        updated_at="1970-01-01T00:00:00+00:00",
    ),
)

_EDITABLE_FIELDS = {"name", "description", "system_prompt", "tone", "creativity", "formality"}


def _tone_params(tone, creativity, formality) -> ToneParams:
    try:
        return ToneParams(Tone(tone), Creativity(creativity), Formality(formality))
    except ValueError as e:
        raise PersonaValidationError(f"Invalid tone parameter: {e}") from e


class PersonaRegistry:
    """Holds built-in and custom personas.

    Example:
        registry = PersonaRegistry(personas_dir=Path("~/.samchat/personas"))
        persona = registry.resolve(session.persona_id)
        prompt = registry.compose_prompt(persona, memory.facts(user_id))
    """

    def __init__(
        self,
        personas_dir: Path | None = None,
        max_custom: int = MAX_CUSTOM_PERSONAS,
    ) -> None:
        """Initialize the registry.

        Args:
            personas_dir: Directory of PERSONA.md files. Loaded on init and
                written to on every change. In-memory only if None.
            max_custom: Cap on the number of custom personas.
        """
        self.personas_dir = personas_dir
        self.max_custom = max_custom
        self._builtins: dict[str, Persona] = {p.id: p for p in BUILTIN_PERSONAS}
        self._custom: dict[str, Persona] = {}

        if personas_dir is not None:
            self.load_directory(personas_dir)

    @property
    def default(self) -> Persona:
        return self._builtins[DEFAULT_PERSONA_ID]

    def get(self, persona_id: str | None) -> Persona | None:
        """Get a persona by id, or None if unknown."""
        if not persona_id:
            return None
        return self._custom.get(persona_id) or self._builtins.get(persona_id)

    def resolve(self, persona_id: str | None) -> Persona:
        """Get a persona by id, falling back to the default persona."""
        persona = self.get(persona_id)
        if persona is None:
            if persona_id:
                logger.debug("Unknown persona %r, using %s", persona_id, DEFAULT_PERSONA_ID)
            return self.default
        return persona

    def __contains__(self, persona_id: str) -> bool:
        return self.get(persona_id) is not None

    def list_personas(self) -> list[Persona]:
        """Built-in personas first, then custom ones by creation time."""
        custom = sorted(self._custom.values(), key=lambda p: p.created_at)
        return list(self._builtins.values()) + custom

    def custom_count(self) -> int:
        return len(self._custom)

    def compose_prompt(self, persona: Persona, facts: list[MemoryFact]) -> str:
        """Build the system prompt for a persona and a user's facts.

        Args:
            persona: The persona to speak as.
            facts: The user's remembered facts; may be empty.

        Returns:
            The persona prompt, followed by the memory block when there are
            any facts.
        """
        block = format_for_prompt(facts)
        if not block:
            return persona.prompt
        return f"{persona.prompt}\n\n{block}"

    @staticmethod
    def generate_custom_prompt(
        tone: Tone | str,
        creativity: Creativity | str,
        formality: Formality | str,
        name: str,
        description: str = "",
    ) -> str:
        """Expand the custom persona template. See :func:`generate_custom_prompt`."""
        return generate_custom_prompt(tone, creativity, formality, name, description)

    def create_custom(self, definition: PersonaDefinition) -> Persona:
        """Create and register a custom persona.

        Raises:
            PersonaLimitError: If the custom persona cap is reached.
            PersonaValidationError: If the name is empty or a knob is invalid.
        """
        if len(self._custom) >= self.max_custom:
            raise PersonaLimitError(
                f"At most {self.max_custom} custom personas are allowed"
            )

        name = definition.name.strip()
        if not name:
            raise PersonaValidationError("Persona name cannot be empty")

        params = _tone_params(definition.tone, definition.creativity, definition.formality)
        timestamp = now_iso()
        persona = Persona(
            id=f"custom_{uuid.uuid4().hex[:12]}",
            name=name,
            description=definition.description.strip(),
            kind=PersonaKind.CUSTOM,
            system_prompt=(definition.system_prompt or "").strip() or None,
            tone_params=params,
            created_at=timestamp,
            updated_at=timestamp,
        )

        self._custom[persona.id] = persona
        self._persist(persona)
        logger.info("Created custom persona %s (%s)", persona.id, persona.name)
        return self._custom[persona.id]

    def update_custom(self, persona_id: str, **changes) -> Persona:
        """Edit a custom persona, producing a new ``updated_at``.

        Args:
            persona_id: Id of the custom persona.
            **changes: Any of name, description, system_prompt, tone,
                creativity, formality.

        Raises:
            BuiltinPersonaError: If the id names a built-in persona.
            PersonaError: If the persona does not exist.
            PersonaValidationError: If a field is unknown or invalid.
        """
        current = self._require_custom(persona_id)

        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise PersonaValidationError(f"Unknown persona fields: {sorted(unknown)}")

        params = current.tone_params or ToneParams()
        new_params = _tone_params(
            changes.get("tone", params.tone),
            changes.get("creativity", params.creativity),
            changes.get("formality", params.formality),
        )

        name = str(changes.get("name", current.name)).strip()
        if not name:
            raise PersonaValidationError("Persona name cannot be empty")

        system_prompt = current.system_prompt
        if "system_prompt" in changes:
            system_prompt = (changes["system_prompt"] or "").strip() or None

        updated = replace(
            current,
            name=name,
            description=str(changes.get("description", current.description)).strip(),
            system_prompt=system_prompt,
            tone_params=new_params,
            updated_at=now_iso(),
        )
        self._custom[persona_id] = updated
        self._persist(updated)
        return self._custom[persona_id]

    def delete_custom(self, persona_id: str) -> bool:
        """Delete a custom persona.

        Sessions that referenced it resolve to the default persona from
        then on; the session manager also re-points them explicitly.

        Returns:
            True if a persona was deleted, False if it did not exist.

        Raises:
            BuiltinPersonaError: If the id names a built-in persona.
        """
        if persona_id in self._builtins:
            raise BuiltinPersonaError(f"Cannot delete built-in persona: {persona_id}")

        persona = self._custom.pop(persona_id, None)
        if persona is None:
            return False

        if persona.path is not None and persona.path.exists():
            persona.path.unlink()
        logger.info("Deleted custom persona %s", persona_id)
        return True

    def load_directory(self, directory: Path) -> list[Persona]:
        """Load every ``*.md`` persona file in a directory.

        Files that fail to parse are skipped with a warning. Loading stops
        at the custom persona cap.

        Returns:
            The personas that were registered.
        """
        loaded: list[Persona] = []
        if not directory.is_dir():
            return loaded

        for path in sorted(directory.glob("*.md")):
            try:
                persona = parse_persona_file(path)
            except PersonaParseError as e:
                logger.warning("Failed to load persona from %s: %s", path, e)
                continue

            if persona.id in self._builtins:
                logger.warning("Persona file %s shadows a built-in id, skipped", path)
                continue
            if persona.id not in self._custom and len(self._custom) >= self.max_custom:
                logger.warning("Custom persona limit reached, skipping %s", path)
                continue

            self._custom[persona.id] = persona
            loaded.append(persona)

        return loaded

    def _require_custom(self, persona_id: str) -> Persona:
        if persona_id in self._builtins:
            raise BuiltinPersonaError(f"Cannot edit built-in persona: {persona_id}")
        persona = self._custom.get(persona_id)
        if persona is None:
            raise PersonaError(f"Unknown persona: {persona_id}")
        return persona

    def _persist(self, persona: Persona) -> None:
        if self.personas_dir is None:
            return

        self.personas_dir.mkdir(parents=True, exist_ok=True)
        path = self.personas_dir / f"{persona.id}.md"
        path.write_text(dump_persona(persona), encoding="utf-8")
        if persona.path != path:
            self._custom[persona.id] = replace(persona, path=path)
