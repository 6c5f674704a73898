"""Oracle adapter using oracledb."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from row_orm.core.connection import ConnectionConfig


def _build_dsn(config: ConnectionConfig) -> str:
    """Build an Oracle DSN string from config fields (host:port/database)."""
    return f"{config.host}:{config.port}/{config.database}"


def _make_row_factory(cursor: Any) -> Any:
    """Create a row factory that converts tuples to dicts using column names."""
    columns = [col[0].lower() for col in cursor.description]

    def factory(*args: Any) -> dict[str, Any]:
        return dict(zip(columns, args, strict=True))

    return factory


class OracleAdapter:
    """Synchronous Oracle adapter using oracledb."""

    @property
    def paramstyle(self) -> str:
        return "named"

    def connect(self, config: ConnectionConfig) -> Any:
        import oracledb

        conn = oracledb.connect(
            user=config.user, password=config.password, dsn=_build_dsn(config)
        )
        conn.autocommit = True
        return conn

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
        """Execute SQL and return a cursor with dict row factory."""
        cursor = connection.cursor()
        cursor.execute(sql, params or {})
        if cursor.description is not None:
            cursor.rowfactory = _make_row_factory(cursor)
        return cursor

    def execute_many(
        self,
        connection: Any,
        sql: str,
        params_seq: Sequence[dict[str, Any]],
    ) -> int:
        with connection.cursor() as cursor:
            cursor.executemany(sql, list(params_seq))
            return int(cursor.rowcount)

    def insert_returning_key(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any],
        key_column: str,
    ) -> Any:
        import oracledb

        with connection.cursor() as cursor:
            generated = cursor.var(oracledb.DB_TYPE_NUMBER)
            cursor.execute(
                f"{sql} RETURNING {key_column} INTO :generated_key",
                {**params, "generated_key": generated},
            )
            values = generated.getvalue()
            if not values:
                return None
            key = values[0]
            return int(key) if key is not None else None

    def table_exists(self, connection: Any, table_name: str) -> bool:
        with connection.cursor() as cursor:
            cursor.execute(
                "SELECT 1 FROM user_tables WHERE table_name = upper(:name)",
                {"name": table_name},
            )
            return cursor.fetchone() is not None
