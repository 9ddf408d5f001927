"""Unit tests for keyword pattern matching.

Tests cover prompt normalization, scoring and tie-breaking, value
extraction, placeholder substitution and the default fallback.
"""

from __future__ import annotations

import pytest
from entities.pattern_matcher.matcher import (
    DEFAULT_CONFIDENCE,
    PatternQueryGenerator,
    extract_values,
    match_prompt,
    normalize_prompt,
)
from models import GenerationSource, QueryPattern, RuleSet


def _rule_set(*patterns: dict, default_intent: str | None = None) -> RuleSet:
    """Build a RuleSet from pattern dicts with a small schema."""
    return RuleSet.model_validate({
        "schema": {
            "actor": {"columns": ["actor_id", "first_name", "last_name"]},
            "film": {"columns": ["film_id", "title"]},
        },
        "query_patterns": list(patterns),
        "default_intent": default_intent,
    })


FALLBACK = {"intent": "fallback", "template": "SELECT film_id, title FROM film"}


# ── Normalization ─────────────────────────────────────────────────────


class TestNormalizePrompt:
    """Prompt normalization."""

    def test_lowercases_and_strips_punctuation(self) -> None:
        """Punctuation is dropped and text lower-cased."""
        assert normalize_prompt("  Show me ALL actors!?  ") == "show me all actors"

    def test_collapses_whitespace(self) -> None:
        """Runs of whitespace become single spaces."""
        assert normalize_prompt("films\t\n  in   action") == "films in action"


# ── Matching ──────────────────────────────────────────────────────────


class TestMatchPrompt:
    """Scoring and selection of patterns."""

    def test_show_me_all_actors(self, rule_set: RuleSet) -> None:
        """The shipped rules answer the canonical actor prompt."""
        match = match_prompt("Show me all actors", rule_set)

        assert match.pattern.intent == "list_actors"
        assert match.is_default is False
        assert "SELECT" in match.sql
        assert "FROM actor" in match.sql
        assert "ORDER BY" in match.sql

    def test_plural_keyword_matches(self) -> None:
        """A keyword matches its plural and singular forms."""
        rules = _rule_set(
            {"intent": "films", "template": "SELECT title FROM film", "keywords": ["films"]},
            FALLBACK,
        )

        assert match_prompt("which film is longest", rules).pattern.intent == "films"

    def test_more_keywords_win(self) -> None:
        """The pattern matching more keywords ranks higher."""
        rules = _rule_set(
            {"intent": "a", "template": "SELECT title FROM film", "keywords": ["film"]},
            {"intent": "b", "template": "SELECT film_id FROM film", "keywords": ["film", "id"]},
            FALLBACK,
        )

        assert match_prompt("film id please", rules).pattern.intent == "b"

    def test_tie_goes_to_first_declared(self) -> None:
        """Equal rank keeps declaration order."""
        rules = _rule_set(
            {"intent": "first", "template": "SELECT title FROM film", "keywords": ["film"]},
            {"intent": "second", "template": "SELECT film_id FROM film", "keywords": ["film"]},
            FALLBACK,
        )

        assert match_prompt("film", rules).pattern.intent == "first"

    def test_density_breaks_equal_counts(self) -> None:
        """With equal matches, the pattern with fewer keywords wins."""
        rules = _rule_set(
            {"intent": "broad", "template": "SELECT title FROM film", "keywords": ["film", "x", "y"]},
            {"intent": "narrow", "template": "SELECT film_id FROM film", "keywords": ["film"]},
            FALLBACK,
        )

        match = match_prompt("film", rules)

        assert match.pattern.intent == "narrow"
        assert match.confidence == pytest.approx(1.0)

    def test_confidence_above_default_band(self, rule_set: RuleSet) -> None:
        """Any keyword match is more confident than the default."""
        match = match_prompt("Show me all actors", rule_set)

        assert DEFAULT_CONFIDENCE < match.confidence <= 1.0

    def test_no_match_returns_default(self, rule_set: RuleSet) -> None:
        """Unrelated prompts fall back to the default pattern."""
        match = match_prompt("tell me a joke about spaceships", rule_set)

        assert match.is_default is True
        assert match.pattern.intent == rule_set.default_pattern.intent
        assert match.confidence <= 0.3
        assert match.sql == rule_set.default_pattern.template

    def test_default_without_default_intent(self) -> None:
        """Without default_intent the first keyword-less pattern is used."""
        rules = _rule_set(
            {"intent": "films", "template": "SELECT title FROM film", "keywords": ["film"]},
            FALLBACK,
        )

        assert match_prompt("zebra", rules).pattern.intent == "fallback"


# ── Extraction and substitution ───────────────────────────────────────


class TestExtraction:
    """Literal values pulled from prompts."""

    def test_value_after_keyword(self, rule_set: RuleSet) -> None:
        """The word after a keyword fills the placeholder."""
        match = match_prompt("Films in category Action", rule_set)

        assert match.pattern.intent == "films_by_category"
        assert match.extracted == ["action"]
        assert "'action'" in match.sql
        assert "%{{" not in match.sql

    def test_value_for_last_name(self, rule_set: RuleSet) -> None:
        """Keyword phrases skip other keywords when extracting."""
        match = match_prompt("actors with last name Guiness", rule_set)

        assert match.pattern.intent == "actors_by_last_name"
        assert match.extracted == ["guiness"]
        assert "UPPER('guiness')" in match.sql

    def test_pattern_without_value_is_skipped(self) -> None:
        """A placeholder pattern with nothing to fill yields to the next one."""
        rules = _rule_set(
            {
                "intent": "by_name",
                "template": "SELECT actor_id FROM actor WHERE last_name = '%{{name}}%'",
                "keywords": ["actor"],
            },
            {"intent": "all", "template": "SELECT actor_id FROM actor", "keywords": ["actor", "cast"]},
            FALLBACK,
        )

        match = match_prompt("show all the actors", rules)

        assert match.pattern.intent == "all"

    def test_fallback_to_remaining_words(self) -> None:
        """Without a neighbouring literal, other non-keyword words are used."""
        pattern = QueryPattern(
            intent="p", template="SELECT 1 FROM film WHERE x = '%{{v}}%'", keywords=["film"]
        )

        assert extract_values(pattern, ["drama", "for", "the", "film"]) == ["drama"]

    def test_placeholders_cycle_through_values(self) -> None:
        """More placeholders than values reuse values in order."""
        rules = _rule_set(
            {
                "intent": "pair",
                "template": "SELECT title FROM film WHERE a = '%{{x}}%' AND b = '%{{y}}%' AND c = '%{{z}}%'",
                "keywords": ["film", "rated"],
            },
            FALLBACK,
        )

        match = match_prompt("film alpha rated beta", rules)

        assert match.extracted == ["alpha", "beta"]
        assert match.sql.endswith("a = 'alpha' AND b = 'beta' AND c = 'alpha'")

    def test_positional_marker_filled(self) -> None:
        """A rule set using bare ? markers gets the extracted value quoted in."""
        rules = RuleSet.model_validate({
            "schema": {"customer": {"columns": ["customer_id", "state"]}},
            "query_patterns": [
                {
                    "intent": "customers_by_state",
                    "template": "SELECT * FROM customer WHERE state = ?",
                    "keywords": ["customer", "state"],
                },
                {"intent": "all_customers", "template": "SELECT * FROM customer"},
            ],
        })

        match = match_prompt("customers in state california", rules)

        assert match.pattern.intent == "customers_by_state"
        assert match.sql == "SELECT * FROM customer WHERE state = 'california'"


# ── Generator ─────────────────────────────────────────────────────────


class TestPatternQueryGenerator:
    """The QueryGenerator wrapper around match_prompt."""

    async def test_generate_returns_pattern_source(self, rule_set: RuleSet) -> None:
        """Generated queries are labelled pattern_matching."""
        generator = PatternQueryGenerator()

        result = await generator.generate("Show me all actors", rule_set)

        assert generator.enabled is True
        assert result.source is GenerationSource.PATTERN_MATCHING
        assert result.matched_pattern is not None
        assert result.matched_pattern.intent == "list_actors"
        assert result.tables_used == ["actor"]

    @pytest.mark.parametrize("prompt", ["x", "???", "1234", "the and or"])
    async def test_generate_is_total(self, rule_set: RuleSet, prompt: str) -> None:
        """Any non-empty prompt yields SQL with confidence in range."""
        result = await PatternQueryGenerator().generate(prompt, rule_set)

        assert result.sql
        assert 0.0 <= result.confidence <= 1.0
