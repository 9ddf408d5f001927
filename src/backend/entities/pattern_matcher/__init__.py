"""Pattern Matcher package for keyword-based SQL generation."""

from .matcher import PatternQueryGenerator, extract_values, match_prompt, normalize_prompt

__all__ = ["PatternQueryGenerator", "extract_values", "match_prompt", "normalize_prompt"]
