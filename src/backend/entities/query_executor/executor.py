"""
Guarded execution of read-only SQL.

``QueryExecutor.run`` safety-checks a statement, probes it with
``EXPLAIN``, caps the number of rows it may return and finally runs it.
Database failures are never raised: they come back as a classified
``ValidationOutcome``.
"""

import asyncio
import logging
import re
import time

from entities.query_validator.validator import mask_literals, validate_sql
from entities.shared.error_recovery import TIMEOUT_SUGGESTION, classify_database_error
from entities.shared.errors import DatabaseError
from entities.shared.protocols import ConnectionPool
from models import OutcomeClassification, ValidationOutcome

logger = logging.getLogger(__name__)

DEFAULT_ROW_LIMIT = 50
MAX_ROW_LIMIT = 500
DEFAULT_TIMEOUT_SECONDS = 30.0

_LIMIT_RE = re.compile(r"\bLIMIT\b", re.IGNORECASE)
_LIMIT_TAIL_RE = re.compile(
    r"^\s+(\d+)\s*(?:,\s*(\d+)|\s+OFFSET\s+(\d+))?\s*$", re.IGNORECASE
)
# Trailing locking clause; LIMIT must come before it
_LOCKING_CLAUSE_RE = re.compile(r"\s+FOR\s+(?:SHARE|UPDATE)\b[\w\s,]*$", re.IGNORECASE)


def _top_level_limit(sql: str) -> re.Match[str] | None:
    """Last LIMIT keyword outside quotes and parentheses."""
    masked, _ = mask_literals(sql)
    depth_at: list[int] = []
    depth = 0
    for ch in masked:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(0, depth - 1)
        depth_at.append(depth)

    found = None
    for match in _LIMIT_RE.finditer(masked):
        if depth_at[match.start()] == 0:
            found = match
    return found


def apply_row_limit(
    sql: str, default_limit: int = DEFAULT_ROW_LIMIT, max_limit: int = MAX_ROW_LIMIT
) -> tuple[str, bool]:
    """
    Make sure a statement returns at most a bounded number of rows.

    * No LIMIT clause: ``LIMIT <default_limit>`` is appended and the
      statement is reported as limited.
    * A LIMIT above ``max_limit`` is lowered to ``max_limit``.
    * A LIMIT that is not a number (``LIMIT give``) is replaced by
      ``LIMIT <default_limit>``.
    * A trailing ``FOR SHARE`` / ``FOR UPDATE`` clause stays after the LIMIT.

    Args:
        sql: A statement that already passed the safety check.
        default_limit: Row cap for statements without a LIMIT.
        max_limit: Largest row count a caller may ask for.

    Returns:
        Tuple of (statement to run, whether a cap was injected).
    """
    statement = sql.strip().rstrip(";").rstrip()
    masked, _ = mask_literals(statement)
    locking = _LOCKING_CLAUSE_RE.search(masked)
    if locking is None:
        return _cap_rows(statement, default_limit, max_limit)

    capped, limited = _cap_rows(statement[: locking.start()], default_limit, max_limit)
    return capped + statement[locking.start() :], limited


def _cap_rows(statement: str, default_limit: int, max_limit: int) -> tuple[str, bool]:
    match = _top_level_limit(statement)
    if match is None:
        return f"{statement} LIMIT {default_limit}", True

    head = statement[: match.start()].rstrip()
    tail = _LIMIT_TAIL_RE.match(statement[match.end() :])
    if tail is None:
        logger.info("Replacing malformed LIMIT clause: %s", statement[match.start() :][:100])
        return f"{head} LIMIT {default_limit}", False

    first, count_after_comma, offset = tail.groups()
    if count_after_comma is not None:
        count = min(int(count_after_comma), max_limit)
        return f"{head} LIMIT {first}, {count}", False
    count = min(int(first), max_limit)
    if offset is not None:
        return f"{head} LIMIT {count} OFFSET {offset}", False
    return f"{head} LIMIT {count}", False


class QueryExecutor:
    """
    Runs read-only SQL against the destination database under guardrails.

    Args:
        pool: Destination connection pool; ``None`` when not configured.
        default_limit: Row cap injected when the statement has no LIMIT.
        max_limit: Upper bound for explicit LIMIT values.
        timeout_seconds: Bound on each database call.
        expose_error_details: Include exception text in internal errors.
    """

    def __init__(
        self,
        pool: ConnectionPool | None,
        default_limit: int = DEFAULT_ROW_LIMIT,
        max_limit: int = MAX_ROW_LIMIT,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        expose_error_details: bool = False,
    ) -> None:
        self.pool = pool
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.timeout_seconds = timeout_seconds
        self.expose_error_details = expose_error_details

    @property
    def configured(self) -> bool:
        return self.pool is not None

    async def run(self, sql: str, execute: bool = True) -> ValidationOutcome:
        """
        Validate and (optionally) execute a statement.

        Stages: safety check, configuration check, ``EXPLAIN`` probe,
        row-limit handling, execution. The probe and the execution share
        one pooled connection.

        Args:
            sql: Statement to run.
            execute: ``False`` stops after the probe (dry run).

        Returns:
            A ``ValidationOutcome`` describing success or the failure class.
        """
        started = time.perf_counter()

        report = validate_sql(sql)
        if not report.is_valid:
            return ValidationOutcome(
                is_valid=False,
                syntax_valid=False,
                classification=OutcomeClassification.REJECTED,
                error=report.message,
                error_code=report.kind.value if report.kind else None,
                execution_time_ms=_elapsed_ms(started),
            )

        if self.pool is None:
            return ValidationOutcome(
                is_valid=False,
                syntax_valid=True,
                classification=OutcomeClassification.NOT_CONFIGURED,
                error="Destination database is not configured",
                execution_time_ms=_elapsed_ms(started),
            )

        statement, limited = apply_row_limit(sql, self.default_limit, self.max_limit)
        probe = "EXPLAIN " + sql.strip().rstrip(";").rstrip()

        try:
            async with self.pool.acquire() as conn:
                await asyncio.wait_for(conn.execute(probe), self.timeout_seconds)
                if not execute:
                    logger.info("Dry run passed: %s", statement[:200])
                    return ValidationOutcome(
                        is_valid=True,
                        syntax_valid=True,
                        classification=OutcomeClassification.OK,
                        executed_sql=statement,
                        limited=limited,
                        execution_time_ms=_elapsed_ms(started),
                    )
                result = await asyncio.wait_for(conn.fetch(statement), self.timeout_seconds)

        except asyncio.TimeoutError:
            logger.warning("Query timed out after %.1fs: %s", self.timeout_seconds, sql[:200])
            return ValidationOutcome(
                is_valid=False,
                syntax_valid=True,
                classification=OutcomeClassification.TIMEOUT,
                error=f"Query timed out after {self.timeout_seconds:g} seconds",
                error_code="QueryTimeout",
                suggestion=TIMEOUT_SUGGESTION,
                executed_sql=statement,
                limited=limited,
                execution_time_ms=_elapsed_ms(started),
            )

        except DatabaseError as exc:
            classification, suggestion = classify_database_error(exc)
            logger.info(
                "Query failed (%s, code=%s, state=%s): %s",
                classification.value,
                exc.code,
                exc.sql_state,
                exc.message[:200],
            )
            return ValidationOutcome(
                is_valid=False,
                syntax_valid=classification is not OutcomeClassification.SYNTAX_ERROR,
                classification=classification,
                error=exc.message,
                error_code=exc.code,
                sql_state=exc.sql_state,
                suggestion=suggestion,
                executed_sql=statement,
                limited=limited,
                execution_time_ms=_elapsed_ms(started),
            )

        except Exception as exc:
            logger.exception("Unexpected error while running query")
            error = "Internal error while validating the query"
            if self.expose_error_details:
                error = f"{error}: {exc}"
            return ValidationOutcome(
                is_valid=False,
                syntax_valid=False,
                classification=OutcomeClassification.INTERNAL_ERROR,
                error=error,
                execution_time_ms=_elapsed_ms(started),
            )

        logger.info("Query returned %d rows (limited=%s)", result.row_count, limited)
        return ValidationOutcome(
            is_valid=True,
            syntax_valid=True,
            classification=OutcomeClassification.OK,
            results=result.rows,
            row_count=result.row_count,
            columns=result.columns,
            executed_sql=statement,
            limited=limited,
            execution_time_ms=_elapsed_ms(started),
        )


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)
