"""
Shared pooled ODBC client for executing queries.

This module provides the production ``ConnectionPool`` used by the
executor (destination database) and by the rule store and audit log
(system database). Connections come from ``aioodbc`` pools and are
returned on every exit path of the ``async with`` block.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

import aioodbc
import pyodbc

from entities.shared.error_recovery import to_database_error
from models import QueryRows

logger = logging.getLogger(__name__)


def to_json_safe(value: Any) -> Any:  # noqa: ANN401
    """Convert a driver value to something JSON can carry."""
    if value is None or isinstance(value, (int, float, str, bool)):
        return value
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


class OdbcConnection:
    """Thin adapter exposing ``execute`` / ``fetch`` over an aioodbc connection."""

    def __init__(self, connection: aioodbc.Connection) -> None:
        self._connection = connection

    async def execute(self, sql: str, params: list[Any] | None = None) -> None:
        try:
            async with self._connection.cursor() as cursor:
                if params:
                    await cursor.execute(sql, params)
                else:
                    await cursor.execute(sql)
        except pyodbc.Error as exc:
            raise to_database_error(exc) from exc

    async def fetch(self, sql: str, params: list[Any] | None = None) -> QueryRows:
        """
        Execute a statement and return its result set.

        Args:
            sql: The SQL statement to execute
            params: Optional bind parameters for ``?`` placeholders

        Returns:
            Column names plus one dictionary per row, with JSON-safe values

        Raises:
            DatabaseError: If the driver reports an error
        """
        logger.debug("Fetching: %s", sql[:200])
        try:
            async with self._connection.cursor() as cursor:
                if params:
                    await cursor.execute(sql, params)
                else:
                    await cursor.execute(sql)

                columns = [column[0] for column in cursor.description] if cursor.description else []
                raw_rows = await cursor.fetchall() if cursor.description else []
        except pyodbc.Error as exc:
            raise to_database_error(exc) from exc

        # Convert to list of dicts with JSON-safe values
        rows = []
        for row in raw_rows:
            rows.append({col: to_json_safe(row[i]) for i, col in enumerate(columns)})

        return QueryRows(columns=columns, rows=rows)


class OdbcConnectionPool:
    """
    ``ConnectionPool`` backed by ``aioodbc.create_pool``.

    Usage:
        pool = await OdbcConnectionPool.create(dsn)
        async with pool.acquire() as conn:
            result = await conn.fetch("SELECT actor_id FROM actor LIMIT 5")
        await pool.close()
    """

    def __init__(self, pool: aioodbc.Pool) -> None:
        self._pool = pool

    @classmethod
    async def create(
        cls, dsn: str, min_size: int = 1, max_size: int = 10
    ) -> "OdbcConnectionPool":
        """
        Open a pool against an ODBC data source.

        Args:
            dsn: ODBC connection string
            min_size: Connections opened eagerly
            max_size: Upper bound on concurrent connections

        Returns:
            A ready pool
        """
        if not dsn:
            raise ValueError("An ODBC connection string is required")
        pool = await aioodbc.create_pool(
            dsn=dsn, minsize=min_size, maxsize=max_size, autocommit=True
        )
        logger.info("Opened ODBC pool (min=%d, max=%d)", min_size, max_size)
        return cls(pool)

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[OdbcConnection]:
        async with self._pool.acquire() as connection:
            yield OdbcConnection(connection)

    async def close(self) -> None:
        self._pool.close()
        await self._pool.wait_closed()
        logger.info("Closed ODBC pool")
