"""Query Executor package for guarded SQL execution."""

from .executor import QueryExecutor, apply_row_limit

__all__ = ["QueryExecutor", "apply_row_limit"]
