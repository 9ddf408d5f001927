"""Pure SQL safety checks.

Decides whether a statement is a single read-only SELECT before it
reaches the database. No I/O, no framework dependencies, suitable for
direct unit testing.

This is a heuristic filter built from regular expressions, not a SQL
parser. It errs towards rejecting: some harmless statements (e.g. a
literal containing the word ``DROP``) are refused.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from entities.shared.errors import PolicyViolation, ViolationKind

logger = logging.getLogger(__name__)

# Statement keywords that must not appear anywhere in a read-only query
FORBIDDEN_KEYWORDS = [
    "INSERT",
    "UPDATE",
    "DELETE",
    "DROP",
    "TRUNCATE",
    "ALTER",
    "CREATE",
    "GRANT",
    "REVOKE",
    "REPLACE",
    "RENAME",
    "CALL",
    "EXEC",
    "EXECUTE",
    "LOCK",
    "HANDLER",
    "LOAD",
]

# REPLACE(...) is a string function; only the statement form is forbidden
_FORBIDDEN_RE = re.compile(
    r"\b(" + "|".join(k for k in FORBIDDEN_KEYWORDS if k != "REPLACE") + r"|REPLACE(?!\s*\())\b",
    re.IGNORECASE,
)

# (pattern, label) pairs checked against the raw statement
DISALLOWED_PATTERNS: list[tuple[str, str]] = [
    (r"\bSLEEP\s*\(", "SLEEP()"),  # Time-based injection
    (r"\bBENCHMARK\s*\(", "BENCHMARK()"),  # Time-based injection
    (r"\bUNION\s+(?:ALL\s+|DISTINCT\s+)?SELECT\b", "UNION SELECT"),
    (r"\bINFORMATION_SCHEMA\b", "information_schema access"),
    (r"\bPERFORMANCE_SCHEMA\b", "performance_schema access"),
    (r"\bmysql\s*\.", "mysql system schema access"),
    (r"\bsys\s*\.", "sys schema access"),
    (r"\bINTO\s+(?:OUTFILE|DUMPFILE)\b", "writing to files"),
    (r"\bLOAD_FILE\s*\(", "LOAD_FILE()"),
    (r"'\s*OR\s+'?\d+'?\s*=\s*'?\d+'?", "tautology condition"),  # ' OR '1'='1'
    (r"'\s*OR\s+''\s*=\s*'", "tautology condition"),  # ' OR ''='
    (r"\bOR\s+(\d+)\s*=\s*\1\b", "tautology condition"),  # OR 1=1
]
_DISALLOWED_RES = [(re.compile(p, re.IGNORECASE), label) for p, label in DISALLOWED_PATTERNS]

# Comment markers, checked outside string literals
_COMMENT_RES = [
    (re.compile(r"--"), "SQL comments (--)"),
    (re.compile(r"/\*"), "SQL comments (/* */)"),
    (re.compile(r"#"), "SQL comments (#)"),
]

_LEADING_WORD_RE = re.compile(r"[A-Za-z_]+")


@dataclass(frozen=True, slots=True)
class SafetyReport:
    """Non-raising result of the safety check.

    Attributes:
        is_valid: True when the statement passed every rule.
        kind: Which rule failed, if any.
        message: Reason for the failure, if any.
    """

    is_valid: bool
    kind: ViolationKind | None = None
    message: str | None = None


def mask_literals(sql: str) -> tuple[str, list[int]]:
    """Blank out quoted text and return the offsets of top-level semicolons.

    Single, double and backtick quotes are recognised; a quote is escaped
    by doubling it or, inside ' and " strings, by a backslash.

    Returns:
        Tuple of (masked SQL, semicolon offsets outside quotes).
    """
    masked: list[str] = []
    semicolons: list[int] = []
    quote: str | None = None
    i = 0
    while i < len(sql):
        ch = sql[i]
        if quote is None:
            if ch in ("'", '"', "`"):
                quote = ch
            elif ch == ";":
                semicolons.append(i)
            masked.append(ch)
        elif ch == "\\" and quote != "`" and i + 1 < len(sql):
            masked.append("  ")
            i += 2
            continue
        elif ch == quote:
            if i + 1 < len(sql) and sql[i + 1] == quote:
                masked.append("  ")
                i += 2
                continue
            quote = None
            masked.append(ch)
        else:
            masked.append(" ")
        i += 1
    return "".join(masked), semicolons


def _skip_leading_noise(sql: str) -> str:
    """Drop leading whitespace, comments and opening parentheses."""
    text = sql
    while True:
        stripped = text.lstrip()
        if stripped.startswith("("):
            text = stripped[1:]
        elif stripped.startswith("--") or stripped.startswith("#"):
            newline = stripped.find("\n")
            text = "" if newline == -1 else stripped[newline + 1 :]
        elif stripped.startswith("/*"):
            end = stripped.find("*/", 2)
            text = "" if end == -1 else stripped[end + 2 :]
        else:
            return stripped


def _check_statement_count(sql: str, semicolons: list[int]) -> None:
    body = sql.rstrip()
    if not semicolons:
        return
    if len(semicolons) == 1 and semicolons[0] == len(body) - 1:
        return
    raise PolicyViolation(ViolationKind.MULTIPLE_STATEMENTS, "Multiple statements are not allowed")


def _check_operation(sql: str) -> None:
    head = _skip_leading_noise(sql)
    match = _LEADING_WORD_RE.match(head)
    operation = match.group(0).upper() if match else ""
    if operation != "SELECT":
        label = operation or "(none)"
        raise PolicyViolation(
            ViolationKind.FORBIDDEN_OPERATION,
            f"Operation {label} is not allowed; only SELECT statements are permitted",
        )

    forbidden = _FORBIDDEN_RE.search(sql)
    if forbidden:
        keyword = forbidden.group(1).upper()
        raise PolicyViolation(
            ViolationKind.FORBIDDEN_OPERATION,
            f"Operation {keyword} is not allowed; only SELECT statements are permitted",
        )


def _check_patterns(sql: str, masked: str) -> None:
    for regex, label in _DISALLOWED_RES:
        if regex.search(sql):
            raise PolicyViolation(ViolationKind.DISALLOWED_PATTERN, f"{label} is not allowed")
    for regex, label in _COMMENT_RES:
        if regex.search(masked):
            raise PolicyViolation(ViolationKind.DISALLOWED_PATTERN, f"{label} are not allowed")


def check_sql(sql: str | None) -> None:
    """Reject anything that is not a single read-only SELECT.

    Rules run in order and the first failure wins: empty statement,
    multiple statements, forbidden operation, disallowed pattern.

    Args:
        sql: The SQL statement to check.

    Raises:
        PolicyViolation: With the kind of the first rule that failed.
    """
    if sql is None or not sql.strip():
        raise PolicyViolation(ViolationKind.EMPTY_QUERY, "Query cannot be empty")

    masked, semicolons = mask_literals(sql)
    _check_statement_count(sql, semicolons)
    _check_operation(sql)
    _check_patterns(sql, masked)


def validate_sql(sql: str | None) -> SafetyReport:
    """Run ``check_sql`` and report the result instead of raising.

    Args:
        sql: The SQL statement to check.

    Returns:
        A ``SafetyReport``; calling this twice on the same text gives the
        same report.
    """
    try:
        check_sql(sql)
    except PolicyViolation as exc:
        logger.info("Rejected query (%s): %s", exc.kind.value, (sql or "")[:200])
        return SafetyReport(is_valid=False, kind=exc.kind, message=exc.message)
    return SafetyReport(is_valid=True)
