"""
Rule-set storage with an explicit in-memory cache.

The rule set lives either in the ``database_config_files`` table of the
system database or in a JSON file shipped with the service. ``RuleStore``
tries its backing stores in order for both reads and writes, caches the
first rule set it loads, and only drops the cache through
``invalidate()`` / ``reload()`` / ``save()``.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from entities.shared.errors import ConfigurationReadOnlyError, RuleSetError
from entities.shared.protocols import ConnectionPool, RuleBackingStore
from models import RuleSet

logger = logging.getLogger(__name__)

_SELECT_RULES_SQL = (
    "SELECT rules_json, schema_json FROM database_config_files WHERE database_settings_id = ?"
)
_UPSERT_RULES_SQL = (
    "INSERT INTO database_config_files (database_settings_id, rules_json, schema_json) "
    "VALUES (?, ?, ?) "
    "ON DUPLICATE KEY UPDATE rules_json = VALUES(rules_json), schema_json = VALUES(schema_json)"
)


def parse_rule_set(data: Any, source: str) -> RuleSet:  # noqa: ANN401
    """Validate raw rule-set data.

    Args:
        data: JSON text or an already-decoded mapping.
        source: Where the data came from, for error messages.

    Returns:
        The validated ``RuleSet``.

    Raises:
        RuleSetError: If the data is not valid JSON or fails validation.
    """
    try:
        if isinstance(data, (str, bytes, bytearray)):
            return RuleSet.model_validate_json(data)
        return RuleSet.model_validate(data)
    except ValidationError as exc:
        raise RuleSetError(f"Invalid rule set in {source}: {exc}") from exc


class FileRuleBackingStore:
    """Rule set stored as a JSON file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"FileRuleBackingStore({str(self.path)!r})"

    async def load(self) -> RuleSet | None:
        if not self.path.exists():
            logger.info("Rules file %s does not exist", self.path)
            return None
        text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        return parse_rule_set(text, str(self.path))

    async def save(self, rule_set: RuleSet) -> None:
        await asyncio.to_thread(self._write, rule_set.to_json())
        logger.info("Saved rule set to %s", self.path)

    def _write(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(text + "\n", encoding="utf-8")
        tmp.replace(self.path)


class DatabaseRuleBackingStore:
    """
    Rule set stored in the ``database_config_files`` table.

    ``rules_json`` holds the patterns (and optionally the schema);
    ``schema_json`` holds the schema when it is kept separately.
    """

    def __init__(self, pool: ConnectionPool, config_id: int) -> None:
        self._pool = pool
        self.config_id = config_id

    def __repr__(self) -> str:
        return f"DatabaseRuleBackingStore(config_id={self.config_id})"

    async def load(self) -> RuleSet | None:
        async with self._pool.acquire() as conn:
            result = await conn.fetch(_SELECT_RULES_SQL, [self.config_id])

        if not result.rows or not result.rows[0].get("rules_json"):
            logger.info("No stored rules for database_settings_id=%s", self.config_id)
            return None

        row = result.rows[0]
        source = f"database_config_files[{self.config_id}]"
        try:
            data = _decode(row["rules_json"])
            schema = row.get("schema_json")
            if schema and isinstance(data, dict) and "schema" not in data:
                data["schema"] = _decode(schema)
        except json.JSONDecodeError as exc:
            raise RuleSetError(f"Invalid JSON in {source}: {exc}") from exc
        return parse_rule_set(data, source)

    async def save(self, rule_set: RuleSet) -> None:
        payload = rule_set.model_dump(mode="json", by_alias=True, exclude_none=True)
        schema = payload.pop("schema", {})
        async with self._pool.acquire() as conn:
            await conn.execute(
                _UPSERT_RULES_SQL, [self.config_id, json.dumps(payload), json.dumps(schema)]
            )
        logger.info("Saved rule set to database_settings_id=%s", self.config_id)


def _decode(value: Any) -> Any:  # noqa: ANN401
    if isinstance(value, (str, bytes, bytearray)):
        return json.loads(value)
    return value


class RuleStore:
    """
    Lazily loaded, explicitly invalidated rule-set cache.

    Backing stores are tried in order. A store that fails (connection
    error, bad content) is skipped with a warning unless it is the last
    one, in which case its error propagates.

    Args:
        stores: Backing stores, most preferred first.
    """

    def __init__(self, stores: list[RuleBackingStore]) -> None:
        if not stores:
            raise ValueError("RuleStore needs at least one backing store")
        self._stores = list(stores)
        self._cache: RuleSet | None = None
        # Bumped by invalidate(); a load started under an older value is discarded
        self._generation = 0
        self._lock = asyncio.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._cache is not None

    async def get(self) -> RuleSet:
        """Return the cached rule set, loading it on first use.

        Raises:
            RuleSetError: If no store has a valid rule set.
        """
        cached = self._cache
        if cached is not None:
            return cached

        async with self._lock:
            # Another coroutine may have loaded it while we waited
            while self._cache is None:
                generation = self._generation
                rule_set = await self._load()
                if generation == self._generation:
                    self._cache = rule_set
                else:
                    logger.info("Rule set changed while loading, loading again")
            return self._cache

    def invalidate(self) -> None:
        """Drop the cached rule set; the next ``get()`` reloads it.

        A load already in flight is not cached, so a save cannot be
        overwritten by rules read before it.
        """
        self._generation += 1
        self._cache = None
        logger.info("Rule set cache cleared")

    async def reload(self) -> RuleSet:
        """Drop the cache and load again immediately."""
        self.invalidate()
        return await self.get()

    async def save(self, rule_set: RuleSet, *, read_only: bool = False) -> None:
        """
        Persist a rule set to the first store that accepts it.

        Args:
            rule_set: The validated rule set to store.
            read_only: True while configuration editing is disabled.

        Raises:
            ConfigurationReadOnlyError: If ``read_only`` is set.
            RuleSetError: If every store failed.
        """
        if read_only:
            raise ConfigurationReadOnlyError()

        last_error: Exception | None = None
        for store in self._stores:
            try:
                await store.save(rule_set)
            except Exception as exc:
                logger.warning("Saving rules to %r failed: %s", store, exc)
                last_error = exc
                continue
            self.invalidate()
            return

        raise RuleSetError(f"Could not save rule set: {last_error}") from last_error

    async def _load(self) -> RuleSet:
        for index, store in enumerate(self._stores):
            is_last = index == len(self._stores) - 1
            try:
                rule_set = await store.load()
            except Exception as exc:
                if is_last:
                    raise
                logger.warning("Loading rules from %r failed, trying next store: %s", store, exc)
                continue
            if rule_set is not None:
                logger.info(
                    "Loaded rule set from %r (%d patterns)", store, len(rule_set.query_patterns)
                )
                return rule_set

        raise RuleSetError("No rule set is configured")
