"""Protocol interfaces for I/O boundaries.

These protocols enable dependency injection for testability.
Production implementations wrap aioodbc, the OpenAI client and the
filesystem; test fakes return canned data with zero network or
filesystem access.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol, runtime_checkable

from models import GeneratedQuery, GenerationSource, QueryLogEntry, QueryRows, RuleSet


@runtime_checkable
class DatabaseConnection(Protocol):
    """A connection borrowed from a ``ConnectionPool``."""

    async def execute(self, sql: str, params: list[Any] | None = None) -> None:
        """Run a statement and discard any result set.

        Args:
            sql: SQL statement, optionally with ``?`` placeholders.
            params: Bind-parameter values (or ``None``).
        """
        ...

    async def fetch(self, sql: str, params: list[Any] | None = None) -> QueryRows:
        """Run a statement and return its rows.

        Args:
            sql: SQL statement, optionally with ``?`` placeholders.
            params: Bind-parameter values (or ``None``).

        Returns:
            Column names and JSON-safe row dictionaries.
        """
        ...


@runtime_checkable
class ConnectionPool(Protocol):
    """Pool of database connections.

    ``acquire()`` returns an async context manager; the connection goes
    back to the pool when the ``async with`` block exits, on every path.
    """

    def acquire(self) -> AbstractAsyncContextManager[DatabaseConnection]:
        """Borrow a connection for the duration of an ``async with`` block."""
        ...

    async def close(self) -> None:
        """Close every pooled connection."""
        ...


@runtime_checkable
class RuleBackingStore(Protocol):
    """Persistent home of the rule set (a JSON file or a database row)."""

    async def load(self) -> RuleSet | None:
        """Return the stored rule set, or ``None`` if nothing is stored.

        Raises:
            RuleSetError: If stored content exists but is invalid.
        """
        ...

    async def save(self, rule_set: RuleSet) -> None:
        """Persist a rule set, replacing what was stored."""
        ...


@runtime_checkable
class QueryGenerator(Protocol):
    """One way of turning a prompt into SQL.

    ``generate`` returns ``None`` when this generator has nothing to
    offer, so the caller can move on to the next one.
    """

    source: GenerationSource

    @property
    def enabled(self) -> bool:
        """Whether the generator can be used at all."""
        ...

    async def generate(self, prompt: str, rule_set: RuleSet) -> GeneratedQuery | None:
        """Generate SQL for a prompt.

        Args:
            prompt: Validated natural-language request.
            rule_set: Current schema and patterns.

        Returns:
            A generated query, or ``None``.
        """
        ...


@runtime_checkable
class QueryLog(Protocol):
    """Audit sink for generation and validation requests."""

    async def record(self, entry: QueryLogEntry) -> None:
        """Store one entry. Must not raise."""
        ...

    async def recent(self, limit: int = 100, offset: int = 0) -> list[QueryLogEntry]:
        """Return the newest entries first."""
        ...
