"""Parser for PERSONA.md files with YAML frontmatter.

A custom persona is stored as a markdown file: the frontmatter holds the
metadata and tone knobs, the body (optional) holds a literal system
prompt. Uses python-frontmatter for parsing and writing.
"""

from pathlib import Path
from typing import Any

import frontmatter

from .errors import PersonaParseError, PersonaValidationError
from .models import Creativity, Formality, Persona, PersonaKind, Tone, ToneParams


def _required_text(meta: dict[str, Any], key: str) -> str:
    """Read a required scalar field as a non-empty string."""
    if key not in meta:
        raise PersonaValidationError(f"Missing required field: {key}")

    raw = meta[key]
    if not isinstance(raw, (str, int, float)):
        raise PersonaValidationError(
            f"Field '{key}' must be a string, got {type(raw).__name__}"
        )
    value = str(raw).strip()
    if not value:
        raise PersonaValidationError(f"Field '{key}' cannot be empty")
    return value


def _parse_tone_params(meta: dict[str, Any]) -> ToneParams:
    defaults = ToneParams()
    try:
        return ToneParams(
            tone=Tone(str(meta.get("tone", defaults.tone.value)).strip().lower()),
            creativity=Creativity(
                str(meta.get("creativity", defaults.creativity.value)).strip().lower()
            ),
            formality=Formality(
                str(meta.get("formality", defaults.formality.value)).strip().lower()
            ),
        )
    except ValueError as e:
        raise PersonaValidationError(f"Invalid tone parameter: {e}") from e


def parse_persona_file(path: Path) -> Persona:
    """Parse a PERSONA.md file.

    Args:
        path: Path to the markdown file.

    Returns:
        The custom persona it describes. The id defaults to the file stem.

    Raises:
        PersonaParseError: If the file cannot be read or parsed.
        PersonaValidationError: If required fields are missing or invalid.
    """
    if not path.is_file():
        raise PersonaParseError(f"Persona file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise PersonaParseError(f"Cannot read persona file {path}: {e}") from e

    return parse_persona_content(content, path=path)


def parse_persona_content(content: str, path: Path | None = None) -> Persona:
    """Parse PERSONA.md content.

    Args:
        content: Raw file content.
        path: Optional source path, used for the default id.

    Returns:
        The parsed custom persona.

    Raises:
        PersonaParseError: If the content cannot be parsed.
        PersonaValidationError: If required fields are missing or invalid.
    """
    try:
        post = frontmatter.loads(content)
    except Exception as e:
        raise PersonaParseError(f"Failed to parse frontmatter: {e}") from e

    meta = post.metadata
    body = post.content.strip()

    name = _required_text(meta, "name")
    description = str(meta.get("description", "") or "").strip()

    persona_id = str(meta.get("id") or (path.stem if path else "")).strip()
    if not persona_id:
        raise PersonaValidationError("Missing required field: id")

    extra = {}
    for key in ("created_at", "updated_at"):
        if meta.get(key):
            extra[key] = str(meta[key])

    return Persona(
        id=persona_id,
        name=name,
        description=description,
        kind=PersonaKind.CUSTOM,
        system_prompt=body or None,
        tone_params=_parse_tone_params(meta),
        path=path,
        **extra,
    )


def dump_persona(persona: Persona) -> str:
    """Render a persona as PERSONA.md content."""
    params = persona.tone_params or ToneParams()
    post = frontmatter.Post(
        persona.system_prompt or "",
        id=persona.id,
        name=persona.name,
        description=persona.description,
        tone=params.tone.value,
        creativity=params.creativity.value,
        formality=params.formality.value,
        created_at=persona.created_at,
        updated_at=persona.updated_at,
    )
    return frontmatter.dumps(post) + "\n"
