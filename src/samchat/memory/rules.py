"""Rule table for pattern-based fact extraction.

Extraction is a fixed, ordered list of rules. Each rule belongs to one
category and holds one or more regexes that are tried in order:

- Explicit rules ("remember that ...", "for later: ...") are not
  first-match-only: every pattern that matches adds a fact.
- Auto-detect rules (name, age, location, ...) stop at the first pattern
  that yields a usable capture, so each category adds at most one fact per
  message.

A capture shorter than the rule's ``min_length`` (after trimming) is
discarded as noise. Extraction never mutates any store; it only returns
candidates for :meth:`MemoryStore.add_fact`.
"""

import logging
import re
from dataclasses import dataclass

from .models import FactCategory, MemoryFact

logger = logging.getLogger(__name__)

# Straight or typographic apostrophe.
_A = "['’]"


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p.replace("'", _A), re.IGNORECASE) for p in patterns)


@dataclass(frozen=True)
class ExtractionRule:
    """One row of the extraction table.

    Attributes:
        category: Category assigned to facts produced by this rule.
        patterns: Regexes tried in order; group 1 is the fact text.
        min_length: Minimum trimmed length of the capture.
        first_match_only: Stop after the first usable match.
        whole_match: Store the entire matched phrase (lower-cased) instead
            of the capture group.
    """

    category: FactCategory
    patterns: tuple[re.Pattern[str], ...]
    min_length: int = 3
    first_match_only: bool = True
    whole_match: bool = False

    def apply(self, text: str) -> list[MemoryFact]:
        """Run this rule against a message."""
        facts: list[MemoryFact] = []
        for pattern in self.patterns:
            match = pattern.search(text)
            if not match or not match.group(1):
                continue
            captured = match.group(1).strip()
            if len(captured) < self.min_length:
                continue
            value = match.group(0).strip().lower() if self.whole_match else captured
            facts.append(MemoryFact(text=value, category=self.category))
            if self.first_match_only:
                break
        return facts


EXPLICIT_RULES: tuple[ExtractionRule, ...] = (
    ExtractionRule(
        category=FactCategory.EXPLICIT,
        patterns=_compile(
            r"(?:remember that|keep in mind that|don't forget that|note that)\s+(.+)",
            r"(?:remember this|keep this in mind|don't forget this|note this):\s*(.+)",
            r"(?:remember|keep in mind|don't forget|note):\s*(.+)",
            r"(?:sam,?\s*remember|sam,?\s*keep in mind|sam,?\s*don't forget)\s+(.+)",
        ),
        min_length=4,
        first_match_only=False,
    ),
    ExtractionRule(
        category=FactCategory.FOR_REFERENCE,
        patterns=_compile(
            r"(?:for later|for future reference|for next time):\s*(.+)",
            r"(?:save this|store this|bookmark this):\s*(.+)",
        ),
        min_length=4,
        first_match_only=False,
    ),
)

AUTO_RULES: tuple[ExtractionRule, ...] = (
    ExtractionRule(
        category=FactCategory.NAME,
        patterns=_compile(
            r"\b(?:i'm called|my name is|call me|i'm|i am)\s+([a-zA-Z]+)",
            r"\b(?:this is|hey i'm|hi i'm|hello i'm)\s+([a-zA-Z]+)",
            r"\b(?:my name's|name's)\s+([a-zA-Z]+)",
            r"\b(?:everyone calls me|people call me|just call me)\s+([a-zA-Z]+)",
        ),
        min_length=2,
    ),
    ExtractionRule(
        category=FactCategory.AGE,
        patterns=_compile(r"\b(?:i'm|i am)\s+(\d+)\s+(?:years old|year old|years|yo)"),
        min_length=1,
    ),
    ExtractionRule(
        category=FactCategory.LOCATION,
        patterns=_compile(r"\b(?:i live in|i'm from|i'm in|from)\s+([a-zA-Z\s]+)"),
    ),
    ExtractionRule(
        category=FactCategory.JOB,
        patterns=_compile(r"\b(?:i work as|i'm a|i am a|my job is|i work at)\s+([a-zA-Z\s]+)"),
    ),
    ExtractionRule(
        category=FactCategory.INTEREST,
        patterns=_compile(r"\b(?:i like|i love|i enjoy|i'm into|i'm interested in)\s+([a-zA-Z\s]+)"),
    ),
    # Keeps the trigger words: "i never drink coffee" and "i always drink
    # coffee" must not collapse into the same fact.
    ExtractionRule(
        category=FactCategory.PREFERENCE,
        patterns=_compile(r"\b(?:i prefer|i usually|i always|i never)\s+([a-zA-Z\s]+)"),
        min_length=4,
        whole_match=True,
    ),
    ExtractionRule(
        category=FactCategory.FAMILY,
        patterns=_compile(
            r"\b(?:my|i have a?)\s+(wife|husband|mom|dad|mother|father|sister|brother"
            r"|son|daughter|kids|children|family)\b"
        ),
        min_length=1,
    ),
    ExtractionRule(
        category=FactCategory.SKILL,
        patterns=_compile(r"\b(?:i can|i know how to|i'm good at|i'm skilled in)\s+([a-zA-Z\s]+)"),
    ),
    ExtractionRule(
        category=FactCategory.GOAL,
        patterns=_compile(
            r"\b(?:i want to|i plan to|i'm planning to|my goal is to|i aim to)\s+([a-zA-Z\s]+)"
        ),
        min_length=4,
    ),
)

DEFAULT_RULES: tuple[ExtractionRule, ...] = EXPLICIT_RULES + AUTO_RULES


def extract_facts(
    text: str, rules: tuple[ExtractionRule, ...] = DEFAULT_RULES
) -> list[MemoryFact]:
    """Extract candidate facts from a raw message.

    Args:
        text: The user's message.
        rules: Rule table to apply, in order.

    Returns:
        Candidate facts in rule order, empty if nothing matched.
    """
    if not isinstance(text, str) or not text.strip():
        return []

    facts: list[MemoryFact] = []
    for rule in rules:
        try:
            facts.extend(rule.apply(text))
        except Exception as e:
            logger.warning("Extraction rule %s failed: %s", rule.category.name, e)
    return facts
