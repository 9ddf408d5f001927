"""
Rule-set models loaded from the persisted query-builder configuration.

A rule set pairs a description of the destination schema with an
ordered list of intent -> SQL template patterns. It is validated once
at load time and is immutable afterwards.
"""

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Named placeholder tokens use the %{{name}}% convention; bare ? markers
# outside quotes are positional placeholders filled in order
PLACEHOLDER_RE: re.Pattern[str] = re.compile(r"%\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}%")

_TABLE_REFERENCE_RE: re.Pattern[str] = re.compile(
    r"\b(?:FROM|JOIN)\s+`?([A-Za-z_][A-Za-z0-9_]*)`?", re.IGNORECASE
)


def positional_slots(template: str) -> list[int]:
    """Offsets of bare ``?`` placeholders, ignoring any inside quoted text."""
    slots: list[int] = []
    quote: str | None = None
    for index, ch in enumerate(template):
        if quote is None:
            if ch in ("'", '"', "`"):
                quote = ch
            elif ch == "?":
                slots.append(index)
        elif ch == quote:
            quote = None
    return slots


class TableInfo(BaseModel):
    """Columns and a short description for one table of the destination schema."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    columns: tuple[str, ...] = Field(default=(), description="Column names in declared order")
    description: str = Field(default="", description="Human-readable table description")


class QueryPattern(BaseModel):
    """
    A named intent mapped to one SQL template.

    Keywords are lower-cased and de-duplicated on load; their declared
    order is kept because parameter extraction walks them in order.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    intent: str = Field(min_length=1, description="Unique intent identifier")
    template: str = Field(
        min_length=1, description="SQL template with %{{name}}% or positional ? placeholders"
    )
    description: str = Field(default="", description="What the query returns")
    keywords: tuple[str, ...] = Field(default=(), description="Trigger keywords")
    examples: tuple[str, ...] = Field(default=(), description="Example prompts")

    @field_validator("keywords", mode="before")
    @classmethod
    def _normalize_keywords(cls, value: object) -> object:
        if not isinstance(value, (list, tuple, set, frozenset)):
            return value
        seen: list[str] = []
        for keyword in value:
            if not isinstance(keyword, str):
                return value  # let pydantic report the type error
            normalized = keyword.strip().lower()
            if normalized and normalized not in seen:
                seen.append(normalized)
        return tuple(seen)

    @property
    def placeholders(self) -> list[str]:
        """Placeholder names in order of first appearance."""
        names: list[str] = []
        for name in PLACEHOLDER_RE.findall(self.template):
            if name not in names:
                names.append(name)
        return names

    @property
    def has_placeholders(self) -> bool:
        """True when the template needs at least one value from the prompt."""
        return bool(self.placeholders) or bool(positional_slots(self.template))

    @property
    def referenced_tables(self) -> set[str]:
        """Table names that appear after FROM or JOIN in the template."""
        return set(_TABLE_REFERENCE_RE.findall(self.template))


class RuleSet(BaseModel):
    """
    Schema description plus ordered query patterns.

    Serialized with the ``schema`` / ``query_patterns`` keys used by the
    persisted configuration.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    tables: dict[str, TableInfo] = Field(
        default_factory=dict, alias="schema", description="Table name -> table info"
    )
    query_patterns: tuple[QueryPattern, ...] = Field(
        min_length=1, description="Patterns in declaration order (earlier wins ties)"
    )
    default_intent: str | None = Field(
        default=None, description="Intent returned when nothing matches"
    )

    @model_validator(mode="after")
    def _check_integrity(self) -> "RuleSet":
        intents: set[str] = set()
        for pattern in self.query_patterns:
            if pattern.intent in intents:
                raise ValueError(f"Duplicate query pattern intent: '{pattern.intent}'")
            intents.add(pattern.intent)

            for table in sorted(pattern.referenced_tables):
                info = self.tables.get(table)
                if info is None:
                    raise ValueError(
                        f"Table '{table}' is referenced by pattern '{pattern.intent}' "
                        "but is not described in the schema"
                    )
                if not info.columns:
                    raise ValueError(
                        f"Table '{table}' is referenced by pattern '{pattern.intent}' "
                        "but declares no columns"
                    )

        if self.default_intent is not None and self.default_intent not in intents:
            raise ValueError(f"default_intent '{self.default_intent}' does not name a pattern")

        # The fallback must always produce SQL without any literal from the prompt
        if self.default_pattern.has_placeholders:
            raise ValueError(
                f"Default pattern '{self.default_pattern.intent}' must not contain placeholders"
            )
        return self

    def get_pattern(self, intent: str) -> QueryPattern | None:
        """Return the pattern with the given intent, if any."""
        for pattern in self.query_patterns:
            if pattern.intent == intent:
                return pattern
        return None

    @property
    def default_pattern(self) -> QueryPattern:
        """The catch-all pattern used when no keyword matches.

        ``default_intent`` wins; otherwise the first keyword-less pattern;
        otherwise the first declared pattern without placeholders;
        otherwise the first declared pattern.
        """
        if self.default_intent is not None:
            pattern = self.get_pattern(self.default_intent)
            if pattern is not None:
                return pattern
        for pattern in self.query_patterns:
            if not pattern.keywords:
                return pattern
        for pattern in self.query_patterns:
            if not pattern.has_placeholders:
                return pattern
        return self.query_patterns[0]

    def to_json(self) -> str:
        """Serialize using the persisted key names."""
        return self.model_dump_json(by_alias=True, indent=2, exclude_none=True)
