"""Tests for the custom persona prompt template."""

import pytest

from samchat.personas import Creativity, Formality, Tone, generate_custom_prompt
from samchat.personas.prompts import (
    CREATIVITY_CLAUSES,
    FORMALITY_CLAUSES,
    RESPONSE_LENGTH_INSTRUCTION,
    TONE_CLAUSES,
)


class TestGenerateCustomPrompt:
    def test_deterministic(self):
        first = generate_custom_prompt("casual", "creative", "mixed", "Nova", "A space nerd")
        second = generate_custom_prompt("casual", "creative", "mixed", "Nova", "A space nerd")
        assert first == second

    def test_strings_and_enums_are_equivalent(self):
        assert generate_custom_prompt("professional", "balanced", "formal", "Max") == (
            generate_custom_prompt(Tone.PROFESSIONAL, Creativity.BALANCED, Formality.FORMAL, "Max")
        )

    def test_opens_with_name(self):
        prompt = generate_custom_prompt("casual", "balanced", "informal", "Nova")
        assert prompt.startswith("You are Nova, a custom AI personality.")

    def test_blank_name(self):
        prompt = generate_custom_prompt("casual", "balanced", "informal", "  ")
        assert prompt.startswith("You are a custom assistant, a custom AI personality.")

    def test_description_included(self):
        prompt = generate_custom_prompt("casual", "balanced", "informal", "Nova", "Loves stars")
        assert "\n\nLoves stars\n\n" in prompt

    def test_no_description(self):
        prompt = generate_custom_prompt("casual", "balanced", "informal", "Nova")
        assert "\n\n\n" not in prompt

    @pytest.mark.parametrize("tone", list(Tone))
    def test_tone_clause(self, tone):
        prompt = generate_custom_prompt(tone, "balanced", "informal", "Nova")
        assert TONE_CLAUSES[tone] in prompt

    def test_clauses_on_consecutive_lines(self):
        prompt = generate_custom_prompt("enthusiastic", "conservative", "formal", "Nova")
        block = "\n".join([
            TONE_CLAUSES[Tone.ENTHUSIASTIC],
            CREATIVITY_CLAUSES[Creativity.CONSERVATIVE],
            FORMALITY_CLAUSES[Formality.FORMAL],
        ])
        assert block in prompt

    def test_ends_with_fixed_instructions(self):
        prompt = generate_custom_prompt("casual", "balanced", "informal", "Nova")
        assert RESPONSE_LENGTH_INSTRUCTION in prompt

    def test_invalid_knob(self):
        with pytest.raises(ValueError):
            generate_custom_prompt("grumpy", "balanced", "informal", "Nova")
