"""
Query generation: try the language model, then fall back to patterns.

``QueryGenerationService`` validates the prompt, loads the rule set and
walks its generators in order. The AI generator is optional and may
fail silently; the pattern generator always produces SQL.
"""

from __future__ import annotations

import logging

from entities.pattern_matcher.matcher import PatternQueryGenerator
from entities.rule_store.store import RuleStore
from entities.shared.errors import InputError
from entities.shared.protocols import QueryGenerator
from models import GeneratedQuery, GenerationSource

logger = logging.getLogger(__name__)

DEFAULT_MAX_PROMPT_LENGTH = 500


def validate_prompt(prompt: str | None, max_length: int = DEFAULT_MAX_PROMPT_LENGTH) -> str:
    """Return the trimmed prompt or raise ``InputError``.

    Args:
        prompt: Raw prompt from the caller.
        max_length: Upper bound on the trimmed length.

    Returns:
        The prompt with surrounding whitespace removed.
    """
    if prompt is None or not prompt.strip():
        raise InputError("Prompt cannot be empty")
    trimmed = prompt.strip()
    if len(trimmed) > max_length:
        raise InputError(f"Prompt is too long (max {max_length} characters)")
    return trimmed


class QueryGenerationService:
    """
    Turns prompts into SQL using the configured generators.

    Args:
        rule_store: Source of the current rule set.
        pattern_generator: The always-available fallback.
        ai_generator: Optional language-model generator.
        max_prompt_length: Longest accepted prompt.
    """

    def __init__(
        self,
        rule_store: RuleStore,
        pattern_generator: QueryGenerator | None = None,
        ai_generator: QueryGenerator | None = None,
        max_prompt_length: int = DEFAULT_MAX_PROMPT_LENGTH,
    ) -> None:
        self.rule_store = rule_store
        self.pattern_generator = pattern_generator or PatternQueryGenerator()
        self.ai_generator = ai_generator
        self.max_prompt_length = max_prompt_length

    @property
    def ai_enabled(self) -> bool:
        return self.ai_generator is not None and self.ai_generator.enabled

    async def generate(self, prompt: str, use_ai: bool = True) -> GeneratedQuery:
        """
        Generate SQL for a natural-language prompt.

        Args:
            prompt: The user's request.
            use_ai: Try the language model first when it is enabled.

        Returns:
            The generated query; ``source`` says which generator produced it.

        Raises:
            InputError: If the prompt is empty or too long.
            RuleSetError: If no rule set can be loaded.
        """
        text = validate_prompt(prompt, self.max_prompt_length)
        rule_set = await self.rule_store.get()

        candidates: list[QueryGenerator] = []
        if use_ai and self.ai_enabled and self.ai_generator is not None:
            candidates.append(self.ai_generator)
        candidates.append(self.pattern_generator)

        for generator in candidates:
            try:
                result = await generator.generate(text, rule_set)
            except Exception:
                if generator.source is GenerationSource.PATTERN_MATCHING:
                    raise
                logger.exception("%s generator failed, falling back", generator.source.value)
                continue
            if result is None:
                logger.info("%s generator returned nothing, falling back", generator.source.value)
                continue
            return result.model_copy(update={"ai_enabled": self.ai_enabled})

        # The pattern generator never returns None
        raise RuntimeError("No generator produced SQL")
