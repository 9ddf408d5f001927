"""Unit tests for the generation service.

Exercises prompt validation, AI-first ordering and the fallback to
pattern matching when the language model is disabled, returns nothing
or raises.
"""

from __future__ import annotations

import pytest
from entities.query_generation.orchestrator import QueryGenerationService, validate_prompt
from entities.rule_store.store import RuleStore
from entities.shared.errors import InputError
from models import GenerationSource, RuleSet

from tests.conftest import FakeBackingStore, FakeGenerator, ai_query


def _service(
    rule_set: RuleSet,
    ai: FakeGenerator | None = None,
    max_prompt_length: int = 500,
) -> tuple[QueryGenerationService, FakeBackingStore]:
    backing = FakeBackingStore(rule_set)
    service = QueryGenerationService(
        RuleStore([backing]), ai_generator=ai, max_prompt_length=max_prompt_length
    )
    return service, backing


# ── Prompt validation ─────────────────────────────────────────────────


class TestValidatePrompt:
    """Empty and oversized prompts."""

    @pytest.mark.parametrize("prompt", [None, "", "   ", "\n\t"])
    def test_empty(self, prompt: str | None) -> None:
        """Blank prompts are rejected."""
        with pytest.raises(InputError, match="cannot be empty"):
            validate_prompt(prompt)

    def test_too_long(self) -> None:
        """The limit applies to the trimmed prompt."""
        with pytest.raises(InputError, match="max 10 characters"):
            validate_prompt("x" * 11, max_length=10)

    def test_trimmed(self) -> None:
        """Surrounding whitespace does not count against the limit."""
        assert validate_prompt("  actors  ", max_length=6) == "actors"


# ── Generation ────────────────────────────────────────────────────────


class TestGenerate:
    """Generator ordering and fallback."""

    async def test_pattern_matching_without_ai(self, rule_set: RuleSet) -> None:
        """With no AI generator the pattern matcher answers."""
        service, _ = _service(rule_set)

        result = await service.generate("Show me all actors")

        assert result.source is GenerationSource.PATTERN_MATCHING
        assert result.matched_pattern is not None
        assert result.matched_pattern.intent == "list_actors"
        assert result.sql.startswith("SELECT")
        assert "FROM actor" in result.sql
        assert "ORDER BY" in result.sql
        assert result.ai_enabled is False
        assert 0.0 < result.confidence <= 1.0

    async def test_ai_first(self, rule_set: RuleSet) -> None:
        """An enabled AI generator is tried first."""
        ai = FakeGenerator(ai_query())
        service, _ = _service(rule_set, ai)

        result = await service.generate("five film titles")

        assert result.source is GenerationSource.AI
        assert result.sql == "SELECT title FROM film LIMIT 5"
        assert result.ai_enabled is True
        assert ai.calls == ["five film titles"]

    async def test_ai_returns_nothing(self, rule_set: RuleSet) -> None:
        """A None from the AI falls back to patterns."""
        service, _ = _service(rule_set, FakeGenerator(None))

        result = await service.generate("Show me all actors")

        assert result.source is GenerationSource.PATTERN_MATCHING
        assert result.ai_enabled is True

    async def test_ai_raises(self, rule_set: RuleSet) -> None:
        """An AI exception is logged and falls back."""
        service, _ = _service(rule_set, FakeGenerator(error=RuntimeError("quota")))

        result = await service.generate("Show me all actors")

        assert result.source is GenerationSource.PATTERN_MATCHING

    async def test_use_ai_false_skips_ai(self, rule_set: RuleSet) -> None:
        """use_ai=False never calls the model."""
        ai = FakeGenerator(ai_query())
        service, _ = _service(rule_set, ai)

        result = await service.generate("Show me all actors", use_ai=False)

        assert result.source is GenerationSource.PATTERN_MATCHING
        assert ai.calls == []

    async def test_disabled_ai_skipped(self, rule_set: RuleSet) -> None:
        """A disabled AI generator is not called and not reported."""
        ai = FakeGenerator(ai_query(), enabled=False)
        service, _ = _service(rule_set, ai)

        result = await service.generate("Show me all actors")

        assert result.source is GenerationSource.PATTERN_MATCHING
        assert result.ai_enabled is False
        assert ai.calls == []

    async def test_unmatched_prompt_uses_default(self, rule_set: RuleSet) -> None:
        """Any non-empty prompt yields SQL."""
        service, _ = _service(rule_set)

        result = await service.generate("zzz qqq")

        assert result.matched_pattern is not None
        assert result.matched_pattern.intent == "film_overview"
        assert result.confidence == pytest.approx(0.2)

    async def test_invalid_prompt_does_not_load_rules(self, rule_set: RuleSet) -> None:
        """Input errors are raised before the rule store is touched."""
        service, backing = _service(rule_set, max_prompt_length=5)

        with pytest.raises(InputError):
            await service.generate("   ")
        with pytest.raises(InputError):
            await service.generate("much too long")

        assert backing.load_calls == 0
