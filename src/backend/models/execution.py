"""
Query execution and results models.

These models represent what the executor returns after a SQL
statement has been checked, probed and (optionally) run.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class OutcomeClassification(str, Enum):
    """How a run ended."""

    OK = "ok"
    REJECTED = "rejected"
    SYNTAX_ERROR = "syntax_error"
    EXECUTION_ERROR = "execution_error"
    TIMEOUT = "timeout"
    NOT_CONFIGURED = "not_configured"
    INTERNAL_ERROR = "internal_error"


class QueryRows(BaseModel):
    """Column names and JSON-safe row dictionaries from one fetch."""

    columns: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)


class ValidationOutcome(BaseModel):
    """
    Result of validating (and optionally executing) a SQL statement.

    ``limited`` is true only when the executor appended a row cap the
    caller did not write.
    """

    is_valid: bool = Field(description="True when the statement passed every stage that ran")
    syntax_valid: bool = Field(description="False for safety rejections and parse errors")
    classification: OutcomeClassification

    error: str | None = Field(default=None, description="User-facing error message")
    error_code: str | None = Field(default=None, description="Driver error code, if any")
    sql_state: str | None = Field(default=None, description="SQLSTATE reported by the driver")
    suggestion: str | None = Field(default=None, description="Hint for fixing the statement")

    results: list[dict[str, Any]] | None = Field(
        default=None, description="Row dictionaries when the statement was executed"
    )
    row_count: int | None = Field(default=None, ge=0)
    columns: list[str] | None = Field(default=None)
    executed_sql: str | None = Field(
        default=None, description="Statement actually sent, after limit handling"
    )
    execution_time_ms: float = Field(default=0.0, ge=0, description="Elapsed milliseconds")
    limited: bool = Field(default=False, description="Whether a row cap was injected")
