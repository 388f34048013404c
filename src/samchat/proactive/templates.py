"""Message pools for proactive check-ins, keyed by persona category."""

import random

PROACTIVE_MESSAGES: dict[str, tuple[str, ...]] = {
    "sam": (
        "Yo, bored rn. You up?",
        "Check this idea I came up with.",
        "What if we built this?",
        "You good, bro? Haven't heard from you today.",
        "Wassup, got something on my mind.",
        "Bruv, you gotta see this.",
        "Yo, random thought just hit me.",
        "Bhai, we need to talk about something.",
        "Heyy, miss our convos ngl.",
    ),
    "corporate": (
        "Good morning! How may I assist you today?",
        "I hope you're having a productive day.",
        "Would you like to review our recent conversations?",
        "I'm here if you need any assistance.",
        "How can I help optimize your workflow today?",
        "I noticed you haven't been active recently. Everything alright?",
        "Ready to tackle some new challenges together?",
        "Is there anything I can help you accomplish today?",
    ),
    "general": (
        "Hey there! What's on your mind?",
        "Ready for our next conversation?",
        "I've been thinking about our last chat.",
        "Hope you're doing well!",
        "Anything interesting happening today?",
        "Feel like chatting?",
        "What's new in your world?",
        "How's your day going?",
    ),
}

GENERAL_POOL = "general"


def pool_for(persona_id: str | None) -> tuple[str, ...]:
    """Template pool for a persona; unknown ids get the general pool."""
    return PROACTIVE_MESSAGES.get(persona_id or "", PROACTIVE_MESSAGES[GENERAL_POOL])


def pick_message(persona_id: str | None, rng: random.Random | None = None) -> str:
    """Pick a random template for a persona."""
    return (rng or random).choice(pool_for(persona_id))
