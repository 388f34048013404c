"""Per-user fact storage with deduplication and a FIFO cap."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from .models import FactCategory, MemoryFact, strip_prefix
from .rules import DEFAULT_RULES, ExtractionRule, extract_facts

logger = logging.getLogger(__name__)

MAX_FACTS = 20


@dataclass
class MemoryConfig:
    """Configuration for the memory store.

    Attributes:
        directory: Where per-user JSON documents are kept. In-memory if None.
        max_facts: Cap on facts kept per user.
    """

    directory: Path | None = None
    max_facts: int = MAX_FACTS

    def __post_init__(self) -> None:
        if self.max_facts < 1:
            raise ValueError("max_facts must be at least 1")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class MemoryDocument:
    """Everything remembered about one user.

    Serialized as ``{facts, personality_preferences, last_updated}`` with
    facts flattened to ``"<CATEGORY>: text"`` strings.
    """

    facts: list[MemoryFact] = field(default_factory=list)
    personality_preferences: dict[str, Any] = field(default_factory=dict)
    last_updated: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted JSON shape."""
        return {
            "facts": [fact.encode() for fact in self.facts],
            "personality_preferences": dict(self.personality_preferences),
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MemoryDocument:
        """Create from the persisted JSON shape, skipping junk entries."""
        raw_facts = data.get("facts", [])
        if not isinstance(raw_facts, list):
            raw_facts = []
        prefs = data.get("personality_preferences", {})
        if not isinstance(prefs, dict):
            prefs = {}
        return cls(
            facts=[MemoryFact.decode(f) for f in raw_facts if isinstance(f, str) and f.strip()],
            personality_preferences=prefs,
            last_updated=str(data.get("last_updated") or _now_iso()),
        )


class MemoryRepository(Protocol):
    """Storage backend for memory documents, keyed by user id."""

    def load(self, user_id: str) -> MemoryDocument | None: ...

    def save(self, user_id: str, document: MemoryDocument) -> None: ...

    def delete(self, user_id: str) -> None: ...


class JsonMemoryRepository:
    """Stores one JSON document per user in a directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, user_id: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", user_id)
        return self.directory / f"{safe}.json"

    def load(self, user_id: str) -> MemoryDocument | None:
        path = self._path(user_id)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                return MemoryDocument.from_dict(json.load(f))
        except (json.JSONDecodeError, OSError, AttributeError) as e:
            logger.warning("Unreadable memory file %s: %s", path, e)
            return None

    def save(self, user_id: str, document: MemoryDocument) -> None:
        with open(self._path(user_id), "w", encoding="utf-8") as f:
            json.dump(document.to_dict(), f, indent=2, ensure_ascii=False)

    def delete(self, user_id: str) -> None:
        path = self._path(user_id)
        if path.exists():
            path.unlink()


def format_for_prompt(facts: list[MemoryFact]) -> str:
    """Format facts as the memory block appended to a system prompt.

    The user's name comes first with an instruction to use it, then facts
    the user explicitly asked to keep, then everything auto-detected.

    Returns:
        The memory block, or an empty string if there are no facts.
    """
    if not facts:
        return ""

    name = next((f for f in facts if f.category is FactCategory.NAME), None)
    explicit = [f for f in facts if f.category.is_explicit]
    detected = [
        f for f in facts
        if not f.category.is_explicit and f.category is not FactCategory.NAME
    ]

    sections = ["Things you remember about this user:"]
    if name:
        sections.append(
            f"USER'S NAME: {strip_prefix(name.text)[1]} (use this name when talking to them)"
        )
    if explicit:
        lines = [f"- {strip_prefix(f.text)[1]}" for f in explicit]
        sections.append(
            "EXPLICIT MEMORIES (they specifically asked you to remember these):\n"
            + "\n".join(lines)
        )
    if detected:
        lines = [f"- {strip_prefix(f.text)[1]}" for f in detected]
        sections.append("AUTO-DETECTED INFO:\n" + "\n".join(lines))

    return "\n\n".join(sections)


class MemoryStore:
    """Holds an ordered, deduplicated list of facts per user.

    Documents are loaded lazily on first access (or explicitly via
    :meth:`load` at login) and written through to the repository on every
    change. Each user's list is capped; the oldest facts are evicted first.
    """

    def __init__(
        self,
        repository: MemoryRepository | None = None,
        max_facts: int = MAX_FACTS,
        rules: tuple[ExtractionRule, ...] = DEFAULT_RULES,
    ) -> None:
        """Initialize the store.

        Args:
            repository: Optional persistence backend; in-memory only if None.
            max_facts: Cap on facts kept per user.
            rules: Extraction rule table used by :meth:`extract`.
        """
        if max_facts < 1:
            raise ValueError("max_facts must be at least 1")
        self.repository = repository
        self.max_facts = max_facts
        self.rules = rules
        self._documents: dict[str, MemoryDocument] = {}

    @classmethod
    def from_config(cls, config: MemoryConfig) -> MemoryStore:
        """Create a store, backed by JSON files if a directory is configured."""
        repository = JsonMemoryRepository(config.directory) if config.directory else None
        return cls(repository=repository, max_facts=config.max_facts)

    def extract(self, text: str) -> list[MemoryFact]:
        """Extract candidate facts from a message without storing them."""
        return extract_facts(text, self.rules)

    def load(self, user_id: str) -> MemoryDocument:
        """Load (or create) the document for a user."""
        if user_id not in self._documents:
            document = self.repository.load(user_id) if self.repository else None
            self._documents[user_id] = document or MemoryDocument()
        return self._documents[user_id]

    def unload(self, user_id: str) -> None:
        """Drop the cached document for a user (logout)."""
        self._documents.pop(user_id, None)

    def _save(self, user_id: str) -> None:
        document = self.load(user_id)
        document.last_updated = _now_iso()
        if self.repository:
            self.repository.save(user_id, document)

    def facts(self, user_id: str) -> list[MemoryFact]:
        """Return a copy of the user's facts, oldest first."""
        return list(self.load(user_id).facts)

    def add_fact(self, user_id: str, fact: MemoryFact) -> bool:
        """Add a fact unless an equal one (case-insensitive text) exists.

        Returns:
            True if the fact was stored.
        """
        if not fact.text.strip():
            return False

        document = self.load(user_id)
        if any(existing.key == fact.key for existing in document.facts):
            return False

        document.facts.append(fact)
        overflow = len(document.facts) - self.max_facts
        if overflow > 0:
            del document.facts[:overflow]

        self._save(user_id)
        return True

    def add_facts(self, user_id: str, facts: list[MemoryFact]) -> int:
        """Add several facts. Returns how many were actually stored."""
        return sum(1 for fact in facts if self.add_fact(user_id, fact))

    def remember(self, user_id: str, text: str) -> MemoryFact | None:
        """Store text the user explicitly asked to remember.

        Returns:
            The stored fact, or None if empty or already known.
        """
        fact = MemoryFact(text=text.strip(), category=FactCategory.EXPLICIT)
        return fact if self.add_fact(user_id, fact) else None

    def remove_fact(self, user_id: str, index: int) -> bool:
        """Remove the fact at index. Out-of-range indexes are a no-op."""
        document = self.load(user_id)
        if index < 0 or index >= len(document.facts):
            return False
        del document.facts[index]
        self._save(user_id)
        return True

    def update_fact(self, user_id: str, index: int, text: str) -> bool:
        """Replace the text of the fact at index, keeping its category.

        Refused when the index is out of range, the text is empty, or the
        new text would duplicate another fact.
        """
        document = self.load(user_id)
        text = text.strip()
        if index < 0 or index >= len(document.facts) or not text:
            return False

        key = text.lower()
        if any(f.key == key for i, f in enumerate(document.facts) if i != index):
            return False

        old = document.facts[index]
        document.facts[index] = MemoryFact(
            text=text, category=old.category, created_at=old.created_at
        )
        self._save(user_id)
        return True

    def clear_all(self, user_id: str) -> None:
        """Forget every fact about a user (preferences are kept)."""
        self.load(user_id).facts.clear()
        self._save(user_id)

    def preferences(self, user_id: str) -> dict[str, Any]:
        """Return a copy of the user's personality preferences."""
        return dict(self.load(user_id).personality_preferences)

    def update_preferences(self, user_id: str, preferences: dict[str, Any]) -> None:
        """Merge preferences into the user's document."""
        self.load(user_id).personality_preferences.update(preferences)
        self._save(user_id)

    def context(self, user_id: str) -> str:
        """Memory block for prompts, without any persona prompt."""
        return format_for_prompt(self.facts(user_id))
