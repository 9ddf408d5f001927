"""
Audit log of generation and validation requests.

``DatabaseQueryLog`` writes to the ``query_logs`` table of the system
database; ``LoggingQueryLog`` is used when no system database is
configured and only writes to the application log. Neither raises from
``record``: a failed audit write must not fail the request.
"""

import logging

from entities.shared.protocols import ConnectionPool
from models import QueryLogEntry

logger = logging.getLogger(__name__)

MAX_LOG_PAGE = 1000

_INSERT_SQL = (
    "INSERT INTO query_logs (natural_language_query, generated_sql, execution_status, "
    "confidence_score, execution_time_ms, error_message, user_session, ip_address) "
    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)"
)
_SELECT_SQL = (
    "SELECT id, natural_language_query, generated_sql, execution_status, confidence_score, "
    "execution_time_ms, error_message, user_session, ip_address, created_at "
    "FROM query_logs ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
)


def clamp_page(limit: int, offset: int) -> tuple[int, int]:
    """Bound a page request to ``1..MAX_LOG_PAGE`` rows and a non-negative offset."""
    return max(1, min(limit, MAX_LOG_PAGE)), max(0, offset)


class LoggingQueryLog:
    """``QueryLog`` that only writes entries to the application log."""

    async def record(self, entry: QueryLogEntry) -> None:
        logger.info(
            "Query log: status=%s confidence=%s time_ms=%s query=%s",
            entry.execution_status.value,
            entry.confidence_score,
            entry.execution_time_ms,
            entry.natural_language_query[:100],
        )

    async def recent(self, limit: int = 100, offset: int = 0) -> list[QueryLogEntry]:
        return []


class DatabaseQueryLog:
    """
    ``QueryLog`` stored in the ``query_logs`` table.

    Args:
        pool: System database pool.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    async def record(self, entry: QueryLogEntry) -> None:
        params = [
            entry.natural_language_query,
            entry.generated_sql,
            entry.execution_status.value,
            entry.confidence_score,
            entry.execution_time_ms,
            entry.error_message,
            entry.user_session,
            entry.ip_address,
        ]
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(_INSERT_SQL, params)
        except Exception:
            logger.exception("Failed to write query log entry")

    async def recent(self, limit: int = 100, offset: int = 0) -> list[QueryLogEntry]:
        """
        Return logged entries, newest first.

        Args:
            limit: Page size, capped at ``MAX_LOG_PAGE``.
            offset: Rows to skip.

        Returns:
            The requested page of entries.
        """
        limit, offset = clamp_page(limit, offset)
        async with self._pool.acquire() as conn:
            result = await conn.fetch(_SELECT_SQL, [limit, offset])
        return [QueryLogEntry.model_validate(row) for row in result.rows]
