"""Contract tests for adapter protocol compliance."""

from __future__ import annotations

import pytest

from row_orm.adapters.mysql import MysqlAdapter
from row_orm.adapters.oracle import OracleAdapter
from row_orm.adapters.postgresql import PostgresqlAdapter
from row_orm.adapters.protocol import SyncAdapter
from row_orm.adapters.sqlite import SqliteAdapter
from row_orm.core.connection import ConnectionConfig


@pytest.fixture
def sqlite_config() -> ConnectionConfig:
    return ConnectionConfig(driver="sqlite", database=":memory:", pool_size=1)


@pytest.mark.parametrize(
    ("adapter", "paramstyle"),
    [
        (SqliteAdapter(), "named"),
        (PostgresqlAdapter(), "pyformat"),
        (MysqlAdapter(), "pyformat"),
        (OracleAdapter(), "named"),
    ],
)
def test_implements_sync_protocol(adapter: object, paramstyle: str) -> None:
    assert isinstance(adapter, SyncAdapter)
    assert adapter.paramstyle == paramstyle  # type: ignore[attr-defined]


class TestSqliteAdapterProtocol:
    def test_lifecycle(self, sqlite_config: ConnectionConfig) -> None:
        adapter = SqliteAdapter()
        conn = adapter.connect(sqlite_config)
        try:
            cursor = adapter.execute(conn, "SELECT 1 AS val")
            row = cursor.fetchone()
            assert row["val"] == 1
        finally:
            adapter.close(conn)

    def test_generated_key(self, sqlite_config: ConnectionConfig) -> None:
        adapter = SqliteAdapter()
        conn = adapter.connect(sqlite_config)
        try:
            adapter.execute(conn, "CREATE TABLE t (id INTEGER PRIMARY KEY AUTOINCREMENT, v TEXT)")
            sql = "INSERT INTO t (v) VALUES (:v)"
            first = adapter.insert_returning_key(conn, sql, {"v": "a"}, "id")
            second = adapter.insert_returning_key(conn, sql, {"v": "b"}, "id")
            assert (first, second) == (1, 2)
        finally:
            adapter.close(conn)

    def test_execute_many(self, sqlite_config: ConnectionConfig) -> None:
        adapter = SqliteAdapter()
        conn = adapter.connect(sqlite_config)
        try:
            adapter.execute(conn, "CREATE TABLE t (v TEXT)")
            count = adapter.execute_many(
                conn, "INSERT INTO t (v) VALUES (:v)", [{"v": "a"}, {"v": "b"}, {"v": "c"}]
            )
            assert count == 3
        finally:
            adapter.close(conn)

    def test_table_exists(self, sqlite_config: ConnectionConfig) -> None:
        adapter = SqliteAdapter()
        conn = adapter.connect(sqlite_config)
        try:
            assert adapter.table_exists(conn, "t") is False
            adapter.execute(conn, "CREATE TABLE T (v TEXT)")
            assert adapter.table_exists(conn, "t") is True
        finally:
            adapter.close(conn)

    def test_transactional_mode(self, sqlite_config: ConnectionConfig) -> None:
        adapter = SqliteAdapter()
        conn = adapter.connect(sqlite_config)
        try:
            adapter.execute(conn, "CREATE TABLE t (v TEXT)")
            adapter.set_autocommit(conn, False)
            adapter.execute(conn, "INSERT INTO t (v) VALUES ('x')")
            assert conn.in_transaction
            conn.rollback()
            adapter.set_autocommit(conn, True)
            assert adapter.execute(conn, "SELECT COUNT(*) AS n FROM t").fetchone()["n"] == 0
        finally:
            adapter.close(conn)
