"""AI Generator package for language-model SQL generation."""

from .client import (
    AnthropicQueryGenerator,
    LanguageModelQueryGenerator,
    OpenAIQueryGenerator,
    parse_ai_response,
)

__all__ = [
    "AnthropicQueryGenerator",
    "LanguageModelQueryGenerator",
    "OpenAIQueryGenerator",
    "parse_ai_response",
]
