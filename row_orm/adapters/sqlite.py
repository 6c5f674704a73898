"""SQLite adapter using stdlib sqlite3."""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from typing import Any

from row_orm.core.connection import ConnectionConfig

# sqlite3 has no native decimal type and deprecates its default datetime adapter
sqlite3.register_adapter(Decimal, str)
sqlite3.register_adapter(datetime, lambda value: value.isoformat(" "))


class SqliteAdapter:
    """Synchronous SQLite adapter.

    Autocommit is ``isolation_level=None``; transactional mode lets sqlite3
    open a deferred transaction before the first write.
    """

    @property
    def paramstyle(self) -> str:
        return "named"

    def connect(self, config: ConnectionConfig) -> sqlite3.Connection:
        conn = sqlite3.connect(config.database, isolation_level=None, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def close(self, connection: sqlite3.Connection) -> None:
        connection.close()

    def set_autocommit(self, connection: sqlite3.Connection, enabled: bool) -> None:
        connection.isolation_level = None if enabled else "DEFERRED"

    def execute(
        self,
        connection: sqlite3.Connection,
        sql: str,
        params: dict[str, Any] | tuple[Any, ...] | None = None,
    ) -> sqlite3.Cursor:
        """Execute SQL and return a cursor."""
        return connection.execute(sql, params if params is not None else ())

    def execute_many(
        self,
        connection: sqlite3.Connection,
        sql: str,
        params_seq: Sequence[dict[str, Any]],
    ) -> int:
        cursor = connection.executemany(sql, params_seq)
        return int(cursor.rowcount)

    def insert_returning_key(
        self,
        connection: sqlite3.Connection,
        sql: str,
        params: dict[str, Any],
        key_column: str,
    ) -> Any:
        cursor = connection.execute(sql, params)
        return cursor.lastrowid

    def table_exists(self, connection: sqlite3.Connection, table_name: str) -> bool:
        cursor = connection.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND lower(name) = lower(?)",
            (table_name,),
        )
        return cursor.fetchone() is not None
