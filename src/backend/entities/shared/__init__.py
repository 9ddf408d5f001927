"""Shared utilities for the query components."""

from .errors import (
    ConfigurationReadOnlyError,
    DatabaseError,
    InputError,
    PolicyViolation,
    QueryServiceError,
    RuleSetError,
    ViolationKind,
)

__all__ = [
    "ConfigurationReadOnlyError",
    "DatabaseError",
    "InputError",
    "PolicyViolation",
    "QueryServiceError",
    "RuleSetError",
    "ViolationKind",
]
