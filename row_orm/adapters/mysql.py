"""MySQL adapter using mysql-connector-python."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from row_orm.core.connection import ConnectionConfig


class MysqlAdapter:
    """Synchronous MySQL adapter using mysql-connector-python."""

    @property
    def paramstyle(self) -> str:
        return "pyformat"

    def connect(self, config: ConnectionConfig) -> Any:
        import mysql.connector

        return mysql.connector.connect(
            host=config.host,
            port=config.port,
            user=config.user,
            password=config.password,
            database=config.database,
            autocommit=True,
            **config.extra,
        )

    def close(self, connection: Any) -> None:
        connection.close()

    def set_autocommit(self, connection: Any, enabled: bool) -> None:
        connection.autocommit = enabled

    def execute(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any] | tuple[Any, ...] | None = None,
    ) -> Any:
        """Execute SQL and return a cursor with dictionary results."""
        cursor = connection.cursor(dictionary=True)
        cursor.execute(sql, params or ())
        return cursor

    def execute_many(
        self,
        connection: Any,
        sql: str,
        params_seq: Sequence[dict[str, Any]],
    ) -> int:
        cursor = connection.cursor()
        try:
            cursor.executemany(sql, params_seq)
            return int(cursor.rowcount)
        finally:
            cursor.close()

    def insert_returning_key(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any],
        key_column: str,
    ) -> Any:
        cursor = connection.cursor()
        try:
            cursor.execute(sql, params)
            return cursor.lastrowid or None
        finally:
            cursor.close()

    def table_exists(self, connection: Any, table_name: str) -> bool:
        cursor = connection.cursor()
        try:
            cursor.execute(
                "SELECT 1 FROM information_schema.tables "
                "WHERE table_schema = DATABASE() AND lower(table_name) = lower(%s)",
                (table_name,),
            )
            return cursor.fetchone() is not None
        finally:
            cursor.close()
