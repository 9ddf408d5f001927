"""Error recovery helpers for database failures.

Pure functions that pull the vendor error code and SQLSTATE out of a
driver exception, classify the failure as a parse error or an
execution error, and select the matching recovery suggestion.
"""

import re

from entities.shared.errors import DatabaseError
from models import OutcomeClassification

# ── Error classification patterns ────────────────────────────────────────

_SYNTAX_CODES = frozenset({"1064", "ER_PARSE_ERROR"})
_SYNTAX_SQL_STATES = frozenset({"42601"})
_SQL_STATE_RE = re.compile(r"^[0-9A-Z]{5}$")
_BRACKETED_CODE_RE = re.compile(r"\((\d{4,5})\)")
_ER_NAME_RE = re.compile(r"\bER_[A-Z_]+\b")

SYNTAX_SUGGESTION = "Check your SQL syntax for typos or missing keywords"
EXECUTION_SUGGESTION = (
    "The query is syntactically correct but failed to execute. Check table/column names."
)
TIMEOUT_SUGGESTION = "Simplify the query or add a more selective WHERE clause"


def to_database_error(exc: BaseException) -> DatabaseError:
    """Build a ``DatabaseError`` from a driver exception.

    pyodbc errors carry ``(sqlstate, message)`` in ``args``; other drivers
    expose ``errno`` / ``code`` / ``sqlstate`` attributes. The vendor code
    is taken from those attributes, else from a ``(1064)`` style suffix or
    an ``ER_*`` name in the message.

    Args:
        exc: The exception raised by the driver.

    Returns:
        A ``DatabaseError`` with whatever details could be found.
    """
    if isinstance(exc, DatabaseError):
        return exc

    args = getattr(exc, "args", ()) or ()
    sql_state = getattr(exc, "sqlstate", None)
    message = str(exc)

    if len(args) >= 2 and isinstance(args[0], str) and _SQL_STATE_RE.match(args[0]):
        sql_state = sql_state or args[0]
        message = str(args[1])
    elif len(args) == 1 and isinstance(args[0], str):
        message = args[0]

    code: str | None = None
    for attr in ("errno", "code"):
        raw = getattr(exc, attr, None)
        if raw is not None and not callable(raw):
            code = str(raw)
            break
    if code is None:
        bracketed = _BRACKETED_CODE_RE.search(message)
        named = _ER_NAME_RE.search(message)
        if bracketed:
            code = bracketed.group(1)
        elif named:
            code = named.group(0)

    return DatabaseError(message, code=code, sql_state=sql_state)


def is_syntax_error(error: DatabaseError) -> bool:
    """Return True when the driver reported a parse failure."""
    if error.code in _SYNTAX_CODES:
        return True
    if error.sql_state in _SYNTAX_SQL_STATES:
        return True
    return "syntax" in error.message.lower()


def classify_database_error(error: DatabaseError) -> tuple[OutcomeClassification, str]:
    """Classify a database failure and pick a recovery suggestion.

    Args:
        error: The failure reported through the connection.

    Returns:
        Tuple of (classification, suggestion).
    """
    if is_syntax_error(error):
        return OutcomeClassification.SYNTAX_ERROR, SYNTAX_SUGGESTION
    return OutcomeClassification.EXECUTION_ERROR, EXECUTION_SUGGESTION
