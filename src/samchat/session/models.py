"""Session and message data models."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

DEFAULT_TITLE = "New Chat"
TITLE_WORDS = 5


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class MessageRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"


class GenerationState(Enum):
    """Lifecycle of an assistant message.

    pending -> streaming -> {complete | aborted | error}; a generation that
    is stopped before any text arrives goes straight from pending to aborted.
    """

    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ABORTED = "aborted"
    ERROR = "error"

    @property
    def in_flight(self) -> bool:
        return self in (GenerationState.PENDING, GenerationState.STREAMING)

    @property
    def terminal(self) -> bool:
        return not self.in_flight


@dataclass
class Message:
    """One message in a session."""

    role: MessageRole
    content: str = ""
    state: GenerationState = GenerationState.COMPLETE
    id: str = field(default_factory=lambda: new_id("msg"))
    timestamp: str = field(default_factory=_now_iso)
    error: str | None = None
    proactive: bool = False

    @property
    def is_user(self) -> bool:
        return self.role is MessageRole.USER

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp,
            "state": self.state.value,
        }
        if self.error:
            data["error"] = self.error
        if self.proactive:
            data["proactive"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        """Create from dictionary.

        A message persisted mid-generation cannot resume, so it is loaded
        as aborted.
        """
        state = GenerationState(data.get("state", GenerationState.COMPLETE.value))
        if state.in_flight:
            state = GenerationState.ABORTED
        return cls(
            id=data["id"],
            role=MessageRole(data["role"]),
            content=data.get("content", ""),
            state=state,
            timestamp=data.get("timestamp") or _now_iso(),
            error=data.get("error"),
            proactive=bool(data.get("proactive", False)),
        )


def derive_title(text: str) -> str:
    """First five words of a message, with an ellipsis if it was longer."""
    words = text.split()
    if not words:
        return DEFAULT_TITLE
    title = " ".join(words[:TITLE_WORDS])
    if len(words) > TITLE_WORDS:
        title += "..."
    return title


@dataclass
class Session:
    """One conversation thread bound to a persona."""

    persona_id: str
    id: str = field(default_factory=lambda: new_id("chat"))
    title: str = DEFAULT_TITLE
    messages: list[Message] = field(default_factory=list)
    created_at: str = field(default_factory=_now_iso)
    last_modified: str = field(default_factory=_now_iso)
    title_locked: bool = False

    def touch(self) -> None:
        """Update last modified timestamp."""
        self.last_modified = _now_iso()

    def find(self, message_id: str) -> int | None:
        """Index of a message, or None if it is not in this session."""
        for index, message in enumerate(self.messages):
            if message.id == message_id:
                return index
        return None

    @property
    def in_flight(self) -> Message | None:
        """The assistant message currently being generated, if any."""
        for message in reversed(self.messages):
            if message.state.in_flight:
                return message
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "persona_id": self.persona_id,
            "title": self.title,
            "title_locked": self.title_locked,
            "messages": [m.to_dict() for m in self.messages],
            "created_at": self.created_at,
            "last_modified": self.last_modified,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        """Create from dictionary."""
        return cls(
            id=data["id"],
            persona_id=data["persona_id"],
            title=data.get("title") or DEFAULT_TITLE,
            title_locked=bool(data.get("title_locked", False)),
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            created_at=data.get("created_at") or _now_iso(),
            last_modified=data.get("last_modified") or _now_iso(),
        )
