"""Query Validator package for safety-checking SQL before execution."""

from .validator import SafetyReport, check_sql, validate_sql

__all__ = ["SafetyReport", "check_sql", "validate_sql"]
