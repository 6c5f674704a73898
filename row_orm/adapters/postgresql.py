"""PostgreSQL adapter using psycopg (v3+)."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from row_orm.core.connection import ConnectionConfig


def _build_conninfo(config: ConnectionConfig) -> str:
    """Build a libpq connection string from config fields."""
    parts: list[str] = []
    if config.host is not None:
        parts.append(f"host={config.host}")
    if config.port is not None:
        parts.append(f"port={config.port}")
    if config.user is not None:
        parts.append(f"user={config.user}")
    if config.password is not None:
        parts.append(f"password={config.password}")
    parts.append(f"dbname={config.database}")
    return " ".join(parts)


class PostgresqlAdapter:
    """Synchronous PostgreSQL adapter using psycopg (v3+)."""

    @property
    def paramstyle(self) -> str:
        return "pyformat"

    def connect(self, config: ConnectionConfig) -> Any:
        import psycopg
        import psycopg.rows

        return psycopg.connect(
            _build_conninfo(config), row_factory=psycopg.rows.dict_row, autocommit=True
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
        return connection.execute(sql, params)

    def execute_many(
        self,
        connection: Any,
        sql: str,
        params_seq: Sequence[dict[str, Any]],
    ) -> int:
        with connection.cursor() as cursor:
            cursor.executemany(sql, params_seq)
            return int(cursor.rowcount)

    def insert_returning_key(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any],
        key_column: str,
    ) -> Any:
        cursor = connection.execute(f"{sql} RETURNING {key_column}", params)
        row = cursor.fetchone()
        return None if row is None else row[key_column]

    def table_exists(self, connection: Any, table_name: str) -> bool:
        cursor = connection.execute(
            "SELECT 1 FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND lower(table_name) = lower(%(name)s)",
            {"name": table_name},
        )
        return cursor.fetchone() is not None
