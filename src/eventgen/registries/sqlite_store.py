"""SQLite-backed save data.

The database holds a versioned schema (``schema_meta``) and the
``runtime_kv`` table behind :class:`~eventgen.registries.storage.RuntimeKVStore`.
Every write runs in its own ``BEGIN IMMEDIATE`` transaction, so a kill-ledger
update is either fully stored or not at all.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Sequence, Tuple

from eventgen.env import get_state_database_path

if TYPE_CHECKING:
    from .storage import StateStores

logger = logging.getLogger(__name__)

_PRAGMAS: Sequence[str] = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA busy_timeout=5000",
)


def _create_runtime_kv(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS runtime_kv (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )


Migration = Tuple[int, Callable[[sqlite3.Connection], None]]

MIGRATIONS: Sequence[Migration] = ((1, _create_runtime_kv),)
SCHEMA_VERSION = MIGRATIONS[-1][0]


def _schema_version(conn: sqlite3.Connection) -> int:
    conn.execute("CREATE TABLE IF NOT EXISTS schema_meta (version INTEGER NOT NULL)")
    row = conn.execute("SELECT version FROM schema_meta LIMIT 1").fetchone()
    if row is None:
        conn.execute("INSERT INTO schema_meta(version) VALUES (0)")
        return 0
    try:
        return int(row[0])
    except (TypeError, ValueError):
        return 0


class SQLiteConnectionManager:
    """Lazily opened, migrated connection to the save database."""

    __slots__ = ("_db_path", "_connection")

    def __init__(self, db_path: Optional[os.PathLike[str] | str] = None) -> None:
        self._db_path = Path(db_path) if db_path is not None else get_state_database_path()
        self._connection: Optional[sqlite3.Connection] = None

    @property
    def path(self) -> Path:
        return self._db_path

    def connect(self) -> sqlite3.Connection:
        if self._connection is not None:
            return self._connection
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        for pragma in _PRAGMAS:
            conn.execute(pragma)
        self._ensure_schema(conn)
        self._connection = conn
        return conn

    def close(self) -> None:
        if self._connection is None:
            return
        self._connection.close()
        self._connection = None

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        with conn:
            conn.execute("BEGIN IMMEDIATE")
            version = _schema_version(conn)
            for target, migrate in MIGRATIONS:
                if version >= target:
                    continue
                migrate(conn)
                conn.execute("UPDATE schema_meta SET version = ?", (target,))
                logger.debug("save schema migrated path=%s version=%s", self._db_path, target)
                version = target


class SQLiteRuntimeKVStore:
    __slots__ = ("_manager",)

    def __init__(self, manager: SQLiteConnectionManager) -> None:
        self._manager = manager

    def _write(self, sql: str, params: Tuple[str, ...]) -> None:
        conn = self._manager.connect()
        with conn:
            conn.execute("BEGIN IMMEDIATE")
            conn.execute(sql, params)

    def get(self, key: str) -> Optional[str]:
        row = self._manager.connect().execute(
            "SELECT value FROM runtime_kv WHERE key = ?",
            (str(key),),
        ).fetchone()
        if row is None or row["value"] is None:
            return None
        return str(row["value"])

    def set(self, key: str, value: str) -> None:
        self._write(
            "INSERT INTO runtime_kv(key, value) VALUES(?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (str(key), str(value)),
        )

    def delete(self, key: str) -> None:
        self._write("DELETE FROM runtime_kv WHERE key = ?", (str(key),))


def get_stores(db_path: Optional[os.PathLike[str] | str] = None) -> "StateStores":
    from .storage import StateStores

    return StateStores(runtime_kv=SQLiteRuntimeKVStore(SQLiteConnectionManager(db_path)))
