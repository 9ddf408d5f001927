"""Exception hierarchy for query generation and validation.

Execution-time database failures are not raised; the executor folds
them into a ``ValidationOutcome``. The exceptions here cover bad input,
safety rejections and rule-set problems.
"""

from __future__ import annotations

from enum import Enum


class ViolationKind(str, Enum):
    """Why the safety check rejected a statement."""

    EMPTY_QUERY = "EmptyQuery"
    MULTIPLE_STATEMENTS = "MultipleStatements"
    FORBIDDEN_OPERATION = "ForbiddenOperation"
    DISALLOWED_PATTERN = "DisallowedPattern"


class QueryServiceError(Exception):
    """Base class for errors raised by the query service."""


class InputError(QueryServiceError):
    """The caller's prompt or statement is unusable."""


class PolicyViolation(QueryServiceError):
    """A statement failed the read-only safety check.

    Args:
        kind: Which rule rejected the statement.
        message: Human-readable reason.
    """

    def __init__(self, kind: ViolationKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


class RuleSetError(QueryServiceError):
    """The persisted rule set is missing or invalid."""


class ConfigurationReadOnlyError(QueryServiceError):
    """Configuration edits are refused while sandbox mode is on."""

    def __init__(self, message: str = "Configuration editing is disabled in sandbox mode") -> None:
        super().__init__(message)


class DatabaseError(QueryServiceError):
    """A database driver reported an error.

    Args:
        message: Driver message text.
        code: Vendor error code (e.g. ``1064``), if known.
        sql_state: Five-character SQLSTATE, if known.
    """

    def __init__(self, message: str, code: str | None = None, sql_state: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.sql_state = sql_state
