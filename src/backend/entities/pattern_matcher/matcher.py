"""
Keyword pattern matching of natural-language prompts.

``match_prompt`` is pure: it scores every pattern of a rule set by the
keywords found in the prompt, pulls literal values out of the words
around those keywords, and fills the winning template. When no pattern
matches it returns the rule set's default pattern, so a non-empty
prompt always yields SQL.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from entities.shared.substitution import substitute_placeholders
from models import (
    GeneratedQuery,
    GenerationSource,
    MatchedPattern,
    PatternMatch,
    QueryPattern,
    RuleSet,
)

logger = logging.getLogger(__name__)

# Confidence for keyword matches is CONFIDENCE_FLOOR + (1 - floor) * fraction,
# so every match outranks DEFAULT_CONFIDENCE.
CONFIDENCE_FLOOR = 0.35
DEFAULT_CONFIDENCE = 0.2
DENSITY_BONUS = 0.5

STOP_WORDS: frozenset[str] = frozenset({
    "the", "and", "or", "in", "at", "to", "for", "of", "with", "by",
    "a", "an", "is", "are", "me", "all", "show", "list", "get", "find",
    "give", "display", "what", "which", "who", "please", "i", "want", "see",
})

_NON_WORD_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_prompt(prompt: str) -> str:
    """Trim, lower-case, drop punctuation and collapse whitespace."""
    text = _NON_WORD_RE.sub("", prompt.strip().lower())
    return _WHITESPACE_RE.sub(" ", text).strip()


def _token_matches(keyword: str, token: str) -> bool:
    return token == keyword or token == keyword + "s" or keyword == token + "s"


def _keyword_positions(keyword: str, tokens: list[str]) -> list[int]:
    """Indexes of the tokens matched by *keyword* (last token for phrases)."""
    parts = keyword.split()
    if len(parts) == 1:
        return [i for i, token in enumerate(tokens) if _token_matches(keyword, token)]

    positions = []
    for start in range(len(tokens) - len(parts) + 1):
        window = tokens[start : start + len(parts)]
        if all(_token_matches(part, token) for part, token in zip(parts, window)):
            positions.append(start + len(parts) - 1)
    return positions


@dataclass(frozen=True, slots=True)
class _Candidate:
    pattern: QueryPattern
    matched: tuple[str, ...]
    rank: float
    confidence: float


def _score(pattern: QueryPattern, tokens: list[str]) -> _Candidate | None:
    if not pattern.keywords:
        return None
    matched = tuple(kw for kw in pattern.keywords if _keyword_positions(kw, tokens))
    if not matched:
        return None
    fraction = len(matched) / len(pattern.keywords)
    return _Candidate(
        pattern=pattern,
        matched=matched,
        rank=len(matched) + DENSITY_BONUS * fraction,
        confidence=CONFIDENCE_FLOOR + (1.0 - CONFIDENCE_FLOOR) * fraction,
    )


def _is_literal(token: str, keyword_tokens: set[str]) -> bool:
    return token not in keyword_tokens and token not in STOP_WORDS and len(token) > 1


def extract_values(pattern: QueryPattern, tokens: list[str]) -> list[str]:
    """
    Pull literal values for *pattern* out of the prompt tokens.

    For each matched keyword in declared order, take the word right after
    it (else right before it) that is neither a keyword nor a stop word.
    If that finds nothing, every remaining non-keyword word is used.

    Args:
        pattern: The pattern whose keywords anchor the extraction.
        tokens: Normalized prompt tokens.

    Returns:
        Distinct literal values in the order found.
    """
    keyword_tokens: set[str] = set()
    anchors: list[int] = []
    for keyword in pattern.keywords:
        positions = _keyword_positions(keyword, tokens)
        for position in positions:
            span = len(keyword.split())
            keyword_tokens.update(tokens[position - span + 1 : position + 1])
        if positions:
            anchors.append(positions[0])

    values: list[str] = []
    for index in anchors:
        for neighbour in (index + 1, index - 1):
            if 0 <= neighbour < len(tokens) and _is_literal(tokens[neighbour], keyword_tokens):
                if tokens[neighbour] not in values:
                    values.append(tokens[neighbour])
                break

    if not values:
        for token in tokens:
            if _is_literal(token, keyword_tokens) and token not in values:
                values.append(token)
    return values


def match_prompt(prompt: str, rule_set: RuleSet) -> PatternMatch:
    """
    Pick the best pattern for a prompt and fill its template.

    Patterns are ranked by matched keyword count plus a density bonus;
    ties go to the pattern declared first. A pattern whose placeholders
    cannot be filled from the prompt is passed over.

    Args:
        prompt: Natural-language request (non-empty).
        rule_set: Patterns and schema to match against.

    Returns:
        A ``PatternMatch``; ``is_default`` is set when nothing matched.
    """
    tokens = normalize_prompt(prompt).split()

    candidates = [c for c in (_score(p, tokens) for p in rule_set.query_patterns) if c]
    # sorted() is stable, so declaration order breaks ties
    candidates = sorted(candidates, key=lambda c: c.rank, reverse=True)

    for candidate in candidates:
        pattern = candidate.pattern
        values = extract_values(pattern, tokens) if pattern.has_placeholders else []
        if pattern.has_placeholders and not values:
            logger.debug("Skipping pattern %s: no value for placeholders", pattern.intent)
            continue
        return PatternMatch(
            pattern=pattern,
            confidence=candidate.confidence,
            extracted=values,
            sql=substitute_placeholders(pattern.template, values),
        )

    default = rule_set.default_pattern
    logger.info("No pattern matched prompt, using default intent %s", default.intent)
    return PatternMatch(
        pattern=default,
        confidence=DEFAULT_CONFIDENCE,
        extracted=[],
        sql=default.template,
        is_default=True,
    )


class PatternQueryGenerator:
    """``QueryGenerator`` backed by keyword matching. Always produces SQL."""

    source = GenerationSource.PATTERN_MATCHING

    @property
    def enabled(self) -> bool:
        return True

    async def generate(self, prompt: str, rule_set: RuleSet) -> GeneratedQuery:
        match = match_prompt(prompt, rule_set)
        logger.info(
            "Pattern match: intent=%s confidence=%.2f default=%s",
            match.pattern.intent,
            match.confidence,
            match.is_default,
        )
        return GeneratedQuery(
            sql=match.sql,
            confidence=match.confidence,
            source=self.source,
            matched_pattern=MatchedPattern(
                intent=match.pattern.intent,
                description=match.pattern.description,
                keywords=list(match.pattern.keywords),
            ),
            tables_used=sorted(match.pattern.referenced_tables),
            extracted_values=match.extracted,
        )
