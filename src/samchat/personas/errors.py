"""Persona errors."""


class PersonaError(Exception):
    """Base class for persona management failures."""

    pass


class PersonaParseError(PersonaError):
    """Raised when a PERSONA.md file cannot be read or parsed."""

    pass


class PersonaValidationError(PersonaParseError):
    """Raised when persona fields fail validation."""

    pass


class PersonaLimitError(PersonaError):
    """Raised when creating more custom personas than allowed."""

    pass


class BuiltinPersonaError(PersonaError):
    """Raised when trying to edit or delete a built-in persona."""

    pass
