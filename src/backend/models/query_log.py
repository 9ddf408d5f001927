"""
Audit records for generation and validation requests.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ExecutionStatus(str, Enum):
    """Stored status of a logged request."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    EXECUTION_ERROR = "execution_error"


class QueryLogEntry(BaseModel):
    """One row of the ``query_logs`` table."""

    id: int | None = Field(default=None, description="Row id (set when read back)")
    natural_language_query: str = Field(description="Prompt, or the SQL for direct validations")
    generated_sql: str | None = None
    execution_status: ExecutionStatus
    confidence_score: float | None = Field(default=None, ge=0.0, le=1.0)
    execution_time_ms: int | None = Field(default=None, ge=0)
    error_message: str | None = None
    user_session: str | None = None
    ip_address: str | None = None
    created_at: datetime | None = None
