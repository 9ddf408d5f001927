"""
Request bodies for the HTTP API.
"""

from pydantic import BaseModel, Field


class GenerateQueryRequest(BaseModel):
    """Body of ``POST /api/generate-query``."""

    prompt: str = Field(description="Natural-language request")
    use_ai: bool = Field(default=True, description="Try the language model before pattern matching")


class ValidateQueryRequest(BaseModel):
    """Body of ``POST /api/validate-query``."""

    sql: str = Field(description="SQL statement to check")
    execute: bool = Field(default=False, description="Run the statement after the syntax probe")
