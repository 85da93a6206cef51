# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Persisted key/value store with change notifications.

Two operations, both fallible-but-never-raising:

- ``load(defaults)`` returns ``{key: value}`` for every key in ``defaults``,
  falling back to the default value for missing keys or on any failure;
- ``save(data)`` writes every key and then notifies subscribers with
  ``{key: StoreChange}``.  A failed write is logged and dropped.

Implementations: ``MemoryStore`` (in-process, shared between engines) and
``SqliteStore`` (aiosqlite, JSON-encoded values).
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import aiosqlite

from .errors import StorageError

logger = logging.getLogger("musicview.store")

_SCHEMA_VERSION = 1

# ---------------------------------------------------------------------------
# Change notifications
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StoreChange:
    """Old and new value of one key after a ``save``."""

    old_value: Any
    new_value: Any


ChangeListener = Callable[[dict[str, StoreChange]], None]


@runtime_checkable
class StoreProtocol(Protocol):
    """Interface the engine needs from persistent storage."""

    async def load(self, defaults: dict[str, Any]) -> dict[str, Any]: ...

    async def save(self, data: dict[str, Any]) -> None: ...

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]: ...


class _ObservableStore:
    """Listener bookkeeping shared by the concrete stores."""

    def __init__(self) -> None:
        self._listeners: list[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a listener.  Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, changes: dict[str, StoreChange]) -> None:
        if not changes:
            return
        for listener in list(self._listeners):
            try:
                listener(changes)
            except Exception:
                logger.warning("Store change listener failed", exc_info=True)


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class MemoryStore(_ObservableStore):
    """Dict-backed store.  Values are deep-copied in and out, like a real store."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        super().__init__()
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self.fail_writes = False
        self.fail_reads = False

    async def load(self, defaults: dict[str, Any]) -> dict[str, Any]:
        if self.fail_reads:
            logger.debug("MemoryStore read failure (simulated)")
            return copy.deepcopy(defaults)
        return {key: copy.deepcopy(self._data.get(key, default)) for key, default in defaults.items()}

    async def save(self, data: dict[str, Any]) -> None:
        if self.fail_writes:
            logger.debug("MemoryStore write failure (simulated): keys=%s", sorted(data))
            return
        changes: dict[str, StoreChange] = {}
        for key, value in data.items():
            old = self._data.get(key)
            self._data[key] = copy.deepcopy(value)
            changes[key] = StoreChange(old_value=old, new_value=copy.deepcopy(value))
        self._notify(changes)

    def peek(self, key: str) -> Any:
        """Return a stored value without going through ``load``."""
        return copy.deepcopy(self._data.get(key))


# ---------------------------------------------------------------------------
# SQLite implementation
# ---------------------------------------------------------------------------

_CREATE_KV = """
CREATE TABLE IF NOT EXISTS kv (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL
)
"""


class SqliteStore(_ObservableStore):
    """SQLite-backed store.  Use the ``create()`` async classmethod factory.

    Values are JSON text; a row that does not decode counts as missing.
    """

    def __init__(self, db: aiosqlite.Connection) -> None:
        super().__init__()
        self._db = db

    @classmethod
    async def create(cls, db_path: str | Path) -> SqliteStore:
        """Open (or create) the database and initialise the schema.

        Raises:
            StorageError: If the file cannot be opened or has a newer schema.
        """
        path = Path(db_path).expanduser().resolve()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            db = await aiosqlite.connect(str(path))
        except (OSError, aiosqlite.Error) as exc:
            raise StorageError(f"Cannot open store at {path}: {exc}") from exc

        try:
            await db.execute("PRAGMA journal_mode = WAL")
            cursor = await db.execute("PRAGMA user_version")
            row = await cursor.fetchone()
            current_version = row[0] if row else 0

            if current_version > _SCHEMA_VERSION:
                raise StorageError(
                    f"Store schema version {current_version} is newer than supported version {_SCHEMA_VERSION}"
                )
            if current_version < _SCHEMA_VERSION:
                await db.execute(_CREATE_KV)
                await db.execute(f"PRAGMA user_version = {_SCHEMA_VERSION}")
                await db.commit()
        except BaseException:
            await db.close()
            raise

        return cls(db)

    async def _read(self, key: str) -> tuple[bool, Any]:
        try:
            cursor = await self._db.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = await cursor.fetchone()
        except (aiosqlite.Error, ValueError) as exc:
            raise StorageError(f"read failed: {exc}", key=key) from exc
        if row is None:
            return False, None
        try:
            return True, json.loads(row[0])
        except (json.JSONDecodeError, TypeError):
            logger.debug("Undecodable value for key=%s, treating as missing", key)
            return False, None

    async def load(self, defaults: dict[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, default in defaults.items():
            try:
                found, value = await self._read(key)
            except StorageError:
                logger.debug("Store load failed for key=%s", key, exc_info=True)
                found, value = False, None
            result[key] = value if found else copy.deepcopy(default)
        return result

    async def save(self, data: dict[str, Any]) -> None:
        changes: dict[str, StoreChange] = {}
        try:
            for key, value in data.items():
                _, old = await self._read(key)
                await self._db.execute(
                    "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                    (key, json.dumps(value, ensure_ascii=False)),
                )
                changes[key] = StoreChange(old_value=old, new_value=value)
            await self._db.commit()
        except (StorageError, aiosqlite.Error, TypeError, ValueError):
            logger.debug("Store save failed: keys=%s", sorted(data), exc_info=True)
            return
        self._notify(changes)

    async def close(self) -> None:
        await self._db.close()
