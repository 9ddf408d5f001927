"""
Shared models for entities.

These models are used across the generation, validation and
execution components and the HTTP layer.
"""

from .execution import OutcomeClassification, QueryRows, ValidationOutcome
from .generation import (
    AIQueryResult,
    GeneratedQuery,
    GenerationSource,
    MatchedPattern,
    PatternMatch,
    clamp_confidence,
)
from .query_log import ExecutionStatus, QueryLogEntry
from .requests import GenerateQueryRequest, ValidateQueryRequest
from .schema import PLACEHOLDER_RE, QueryPattern, RuleSet, TableInfo, positional_slots

__all__ = [
    # Schema (rule set)
    "PLACEHOLDER_RE",
    "QueryPattern",
    "RuleSet",
    "TableInfo",
    "positional_slots",
    # Generation
    "AIQueryResult",
    "GeneratedQuery",
    "GenerationSource",
    "MatchedPattern",
    "PatternMatch",
    "clamp_confidence",
    # Execution
    "OutcomeClassification",
    "QueryRows",
    "ValidationOutcome",
    # Audit log
    "ExecutionStatus",
    "QueryLogEntry",
    # HTTP requests
    "GenerateQueryRequest",
    "ValidateQueryRequest",
]
