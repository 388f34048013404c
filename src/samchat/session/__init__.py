"""Session module for conversation threads."""

from .errors import (
    MessageNotFoundError,
    NothingToRegenerateError,
    SessionBusyError,
    SessionError,
    SessionNotFoundError,
)
from .manager import SessionConfig, SessionManager
from .models import (
    DEFAULT_TITLE,
    GenerationState,
    Message,
    MessageRole,
    Session,
    derive_title,
)

__all__ = [
    "DEFAULT_TITLE",
    "GenerationState",
    "Message",
    "MessageNotFoundError",
    "MessageRole",
    "NothingToRegenerateError",
    "Session",
    "SessionBusyError",
    "SessionConfig",
    "SessionError",
    "SessionManager",
    "SessionNotFoundError",
    "derive_title",
]
