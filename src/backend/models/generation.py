"""
SQL generation models.

These models represent the result of turning a natural-language
prompt into SQL, either through the language model or through
pattern matching.
"""

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from .schema import QueryPattern


def clamp_confidence(value: object) -> float:
    """Clamp a numeric confidence value into [0, 1].

    Raises:
        ValueError: If the value is not an int or float. Numeric strings
            and bools are refused.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("confidence must be a number")
    number = float(value)
    if number != number:  # NaN
        raise ValueError("confidence must be a number")
    return max(0.0, min(1.0, number))


class GenerationSource(str, Enum):
    """Which generator produced the SQL."""

    AI = "ai"
    PATTERN_MATCHING = "pattern_matching"


class MatchedPattern(BaseModel):
    """Summary of the pattern (or AI pseudo-pattern) behind a generated query."""

    intent: str
    description: str = ""
    keywords: list[str] = Field(default_factory=list)


class PatternMatch(BaseModel):
    """Best pattern for a prompt, with the literals pulled out of it."""

    pattern: QueryPattern
    confidence: float = Field(ge=0.0, le=1.0)
    extracted: list[str] = Field(default_factory=list)
    sql: str = Field(description="Template with placeholders substituted")
    is_default: bool = Field(default=False, description="True when no keyword matched")


class AIQueryResult(BaseModel):
    """
    Structured body returned by the language model.

    The provider is untrusted: ``sql`` must be present and ``confidence``
    is clamped into [0, 1].
    """

    sql: str = Field(min_length=1)
    confidence: float
    reasoning: str = ""
    tables_used: list[str] = Field(default_factory=list)

    @field_validator("sql")
    @classmethod
    def _strip_sql(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("sql must not be blank")
        return stripped

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value: object) -> float:
        return clamp_confidence(value)

    @field_validator("reasoning", mode="before")
    @classmethod
    def _reasoning_text(cls, value: object) -> str:
        return "" if value is None else str(value)

    @field_validator("tables_used", mode="before")
    @classmethod
    def _tables_list(cls, value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        if isinstance(value, (list, tuple, set)):
            return [str(item) for item in value]
        return []


class GeneratedQuery(BaseModel):
    """
    Response of query generation.

    Confidence is clamped on construction regardless of where it came from.
    """

    sql: str = Field(min_length=1, description="Generated SQL statement")
    confidence: float = Field(description="Match confidence in [0, 1]")
    source: GenerationSource = Field(description="Generator that produced the SQL")
    matched_pattern: MatchedPattern | None = Field(default=None)
    reasoning: str | None = Field(default=None, description="Model explanation (AI only)")
    tables_used: list[str] = Field(default_factory=list)
    extracted_values: list[str] = Field(
        default_factory=list, description="Literals substituted into the template"
    )
    ai_enabled: bool = Field(default=False, description="Whether the AI generator was available")

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value: object) -> float:
        return clamp_confidence(value)
