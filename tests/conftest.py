"""Shared test fixtures for the query service."""

import asyncio
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import pytest

# Ensure src/backend/ is on the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src" / "backend"))

from config.settings import DEFAULT_RULES_FILE, Settings
from models import GeneratedQuery, GenerationSource, QueryLogEntry, QueryRows, RuleSet

# ---------------------------------------------------------------------------
# Protocol fakes
# ---------------------------------------------------------------------------


class FakeConnection:
    """In-memory fake satisfying the ``DatabaseConnection`` protocol.

    Records every statement. ``errors`` maps a statement prefix (e.g.
    ``"EXPLAIN"``) to the exception raised for statements starting with
    it; ``delay`` makes every call sleep first.
    """

    def __init__(
        self,
        rows: QueryRows | None = None,
        errors: dict[str, Exception] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.rows = rows or QueryRows(columns=["actor_id"], rows=[{"actor_id": 1}])
        self.errors: dict[str, Exception] = errors or {}
        self.delay = delay
        self.statements: list[tuple[str, list[Any] | None]] = []

    async def _run(self, sql: str, params: list[Any] | None) -> None:
        self.statements.append((sql, params))
        if self.delay:
            await asyncio.sleep(self.delay)
        for prefix, error in self.errors.items():
            if sql.upper().startswith(prefix.upper()):
                raise error

    async def execute(self, sql: str, params: list[Any] | None = None) -> None:
        """Record the statement; raise a scripted error if one matches."""
        await self._run(sql, params)

    async def fetch(self, sql: str, params: list[Any] | None = None) -> QueryRows:
        """Record the statement and return the canned rows."""
        await self._run(sql, params)
        return self.rows


class FakePool:
    """In-memory fake satisfying the ``ConnectionPool`` protocol.

    Hands out a single ``FakeConnection`` and counts acquisitions and
    releases so tests can assert the connection always goes back.
    """

    def __init__(self, connection: FakeConnection | None = None) -> None:
        self.connection = connection or FakeConnection()
        self.acquired = 0
        self.released = 0
        self.closed = False

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[FakeConnection]:
        """Yield the shared connection, counting the borrow."""
        self.acquired += 1
        try:
            yield self.connection
        finally:
            self.released += 1

    async def close(self) -> None:
        """Mark the pool closed."""
        self.closed = True


class FakeBackingStore:
    """In-memory fake satisfying the ``RuleBackingStore`` protocol.

    ``delay`` makes ``load()`` read the stored rule set first and only
    return it after sleeping, like a slow database round trip.
    """

    def __init__(
        self,
        rule_set: RuleSet | None = None,
        load_error: Exception | None = None,
        save_error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.rule_set = rule_set
        self.delay = delay
        self.load_error = load_error
        self.save_error = save_error
        self.load_calls = 0
        self.saved: list[RuleSet] = []

    async def load(self) -> RuleSet | None:
        """Return the stored rule set (or raise the scripted error)."""
        self.load_calls += 1
        if self.load_error is not None:
            raise self.load_error
        rule_set = self.rule_set
        if self.delay:
            await asyncio.sleep(self.delay)
        return rule_set

    async def save(self, rule_set: RuleSet) -> None:
        """Store the rule set (or raise the scripted error)."""
        if self.save_error is not None:
            raise self.save_error
        self.saved.append(rule_set)
        self.rule_set = rule_set


class FakeGenerator:
    """Fake satisfying the ``QueryGenerator`` protocol for the AI slot.

    Returns ``result`` (or raises ``error``) and records every prompt.
    """

    source = GenerationSource.AI

    def __init__(
        self,
        result: GeneratedQuery | None = None,
        error: Exception | None = None,
        enabled: bool = True,
    ) -> None:
        self.result = result
        self.error = error
        self._enabled = enabled
        self.calls: list[str] = []

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def generate(self, prompt: str, rule_set: RuleSet) -> GeneratedQuery | None:
        """Return the canned result."""
        self.calls.append(prompt)
        if self.error is not None:
            raise self.error
        return self.result


class FakeQueryLog:
    """In-memory fake satisfying the ``QueryLog`` protocol."""

    def __init__(self) -> None:
        self.entries: list[QueryLogEntry] = []

    async def record(self, entry: QueryLogEntry) -> None:
        """Keep the entry."""
        self.entries.append(entry)

    async def recent(self, limit: int = 100, offset: int = 0) -> list[QueryLogEntry]:
        """Return entries newest first."""
        return list(reversed(self.entries))[offset : offset + limit]


def ai_query(sql: str = "SELECT title FROM film LIMIT 5", confidence: float = 0.9) -> GeneratedQuery:
    """Build a ``GeneratedQuery`` as the AI generator would."""
    return GeneratedQuery(sql=sql, confidence=confidence, source=GenerationSource.AI, ai_enabled=True)


def load_default_rule_set() -> RuleSet:
    """Parse the rules.json shipped with the service."""
    return RuleSet.model_validate_json(DEFAULT_RULES_FILE.read_text(encoding="utf-8"))


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Return a ``Settings`` instance populated with safe test defaults."""
    return Settings(
        database_dsn="",
        system_database_dsn="",
        openai_api_key=None,
        anthropic_api_key=None,
        rules_file=tmp_path / "rules.json",
        environment="test",
    )


@pytest.fixture
def rule_set() -> RuleSet:
    """Return the default Sakila rule set."""
    return load_default_rule_set()


@pytest.fixture
def fake_pool() -> FakePool:
    """Return a ``FakePool`` with one healthy connection."""
    return FakePool()


@pytest.fixture
def fake_query_log() -> FakeQueryLog:
    """Return an empty ``FakeQueryLog``."""
    return FakeQueryLog()
