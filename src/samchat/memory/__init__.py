"""Memory module for remembered facts about the user."""

from .models import FactCategory, MemoryFact
from .rules import DEFAULT_RULES, ExtractionRule, extract_facts
from .store import (
    MAX_FACTS,
    MemoryConfig,
    JsonMemoryRepository,
    MemoryDocument,
    MemoryRepository,
    MemoryStore,
    format_for_prompt,
)

__all__ = [
    "DEFAULT_RULES",
    "ExtractionRule",
    "FactCategory",
    "JsonMemoryRepository",
    "MAX_FACTS",
    "MemoryConfig",
    "MemoryDocument",
    "MemoryFact",
    "MemoryRepository",
    "MemoryStore",
    "extract_facts",
    "format_for_prompt",
]
