"""Unit tests for TransactionManager and ExecutionContext."""

from __future__ import annotations

import logging
import threading
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import pytest

from row_orm.core.connection import ConnectionConfig, ConnectionManager
from row_orm.core.context import ContextState
from row_orm.core.exceptions import (
    ConnectionAcquisitionFailure,
    TransactionError,
    TransactionStateError,
)
from row_orm.core.transaction import TransactionManager


@pytest.fixture
def adapter() -> MagicMock:
    mock = MagicMock()
    mock.paramstyle = "named"
    mock.connect.side_effect = lambda config: MagicMock(name="connection")
    return mock


@pytest.fixture
def manager(adapter: MagicMock) -> ConnectionManager:
    config = ConnectionConfig(driver="sqlite", database=":memory:", pool_size=2, pool_timeout=1)
    return ConnectionManager(config, adapter)


@pytest.fixture
def tx(manager: ConnectionManager) -> TransactionManager:
    return TransactionManager(manager)


def _autocommit_calls(adapter: MagicMock) -> list[Any]:
    return [c.args[1] for c in adapter.set_autocommit.call_args_list]


class TestStatementScope:
    def test_autocommit_statement_releases(
        self, tx: TransactionManager, manager: ConnectionManager
    ) -> None:
        with tx.statement() as ctx:
            assert ctx.state is ContextState.AUTOCOMMIT
            assert manager.pool_info()["in_use"] == 1
        assert ctx.state is ContextState.IDLE
        assert not ctx.bound
        assert manager.pool_info()["in_use"] == 0

    def test_nested_scope_reuses_connection(self, tx: TransactionManager) -> None:
        with tx.statement() as outer:
            connection = outer.connection
            with tx.statement(outer) as inner:
                assert inner is outer
                assert inner.connection is connection
                assert inner.depth == 2
            assert outer.bound
        assert not outer.bound

    def test_failure_rolls_back_and_releases(
        self, tx: TransactionManager, manager: ConnectionManager
    ) -> None:
        ctx = tx.start_transaction()
        connection = ctx.connection
        with pytest.raises(RuntimeError, match="boom"), tx.statement(ctx):
            raise RuntimeError("boom")
        connection.rollback.assert_called_once()
        assert ctx.state is ContextState.IDLE
        assert manager.pool_info()["in_use"] == 0

    def test_failing_rollback_does_not_mask_error(
        self, tx: TransactionManager, caplog: pytest.LogCaptureFixture
    ) -> None:
        ctx = tx.start_transaction()
        ctx.connection.rollback.side_effect = OSError("connection lost")
        with caplog.at_level(logging.ERROR, logger="row_orm.core.transaction"):
            with pytest.raises(RuntimeError, match="boom"), tx.statement(ctx):
                raise RuntimeError("boom")
        assert "Rollback failed" in caplog.text
        assert not ctx.bound

    def test_failing_rollback_closes_connection(
        self, tx: TransactionManager, adapter: MagicMock, manager: ConnectionManager
    ) -> None:
        ctx = tx.start_transaction()
        connection = ctx.connection
        connection.rollback.side_effect = OSError("connection lost")

        with pytest.raises(TransactionError, match="Rollback failed"):
            tx.rollback(ctx)

        assert _autocommit_calls(adapter) == [False]
        adapter.close.assert_called_once_with(connection)
        assert manager.pool_info() == {"size": 2, "open": 0, "idle": 0, "in_use": 0}
        assert manager.acquire() is not connection


class TestTransactions:
    def test_start_disables_autocommit(self, tx: TransactionManager, adapter: MagicMock) -> None:
        ctx = tx.start_transaction()
        assert ctx.in_transaction
        assert _autocommit_calls(adapter) == [False]

    def test_statements_keep_connection_in_transaction(
        self, tx: TransactionManager, manager: ConnectionManager
    ) -> None:
        ctx = tx.start_transaction()
        connection = ctx.connection
        with tx.statement(ctx):
            pass
        assert ctx.connection is connection
        assert manager.pool_info()["in_use"] == 1

    def test_commit_releases_and_restores_autocommit(
        self, tx: TransactionManager, adapter: MagicMock, manager: ConnectionManager
    ) -> None:
        ctx = tx.start_transaction()
        connection = ctx.connection
        tx.commit(ctx)
        connection.commit.assert_called_once()
        assert _autocommit_calls(adapter) == [False, True]
        assert ctx.state is ContextState.IDLE
        assert manager.pool_info() == {"size": 2, "open": 1, "idle": 1, "in_use": 0}

    def test_rollback(self, tx: TransactionManager) -> None:
        ctx = tx.start_transaction()
        connection = ctx.connection
        tx.rollback(ctx)
        connection.rollback.assert_called_once()
        assert not ctx.bound

    def test_commit_failure_still_releases(
        self, tx: TransactionManager, manager: ConnectionManager
    ) -> None:
        ctx = tx.start_transaction()
        ctx.connection.commit.side_effect = OSError("disk full")
        with pytest.raises(TransactionError, match="Commit failed"):
            tx.commit(ctx)
        assert manager.pool_info()["in_use"] == 0
        assert manager.pool_info()["idle"] == 0

    def test_commit_without_connection(self, tx: TransactionManager) -> None:
        with pytest.raises(TransactionStateError, match="Cannot commit in state 'idle'"):
            tx.commit(tx.new_context())

    def test_rollback_without_connection(self, tx: TransactionManager) -> None:
        with pytest.raises(TransactionStateError, match="rollback"):
            tx.rollback(tx.new_context())

    def test_start_twice(self, tx: TransactionManager) -> None:
        ctx = tx.start_transaction()
        with pytest.raises(TransactionStateError):
            tx.start_transaction(ctx)

    def test_context_manager_commits(self, tx: TransactionManager) -> None:
        with tx.start_transaction() as ctx:
            connection = ctx.connection
        connection.commit.assert_called_once()
        assert not ctx.bound

    def test_context_manager_rolls_back_on_error(self, tx: TransactionManager) -> None:
        with pytest.raises(ValueError), tx.start_transaction() as ctx:
            connection = ctx.connection
            raise ValueError("bad")
        connection.rollback.assert_called_once()
        connection.commit.assert_not_called()

    def test_start_failure_releases(
        self, tx: TransactionManager, adapter: MagicMock, manager: ConnectionManager
    ) -> None:
        adapter.set_autocommit.side_effect = [OSError("nope"), None]
        with pytest.raises(ConnectionAcquisitionFailure):
            tx.start_transaction()
        assert manager.pool_info()["in_use"] == 0

    def test_context_is_bound_to_its_thread(self, tx: TransactionManager) -> None:
        ctx = tx.start_transaction()
        errors: list[Exception] = []

        def use() -> None:
            try:
                tx.acquire(ctx)
            except TransactionStateError as e:
                errors.append(e)

        thread = threading.Thread(target=use)
        thread.start()
        thread.join()
        assert len(errors) == 1


class TestConnectionManager:
    def test_pool_exhaustion(self, manager: ConnectionManager) -> None:
        first = manager.acquire()
        second = manager.acquire()
        assert first is not second
        with pytest.raises(ConnectionAcquisitionFailure, match="pool_size=2"):
            manager.acquire()

    def test_released_connection_is_reused(self, manager: ConnectionManager) -> None:
        connection = manager.acquire()
        manager.release(connection)
        assert manager.acquire() is connection

    def test_connect_failure(self, adapter: MagicMock, manager: ConnectionManager) -> None:
        adapter.connect.side_effect = OSError("refused")
        with pytest.raises(ConnectionAcquisitionFailure, match="refused"):
            manager.acquire()
        assert manager.pool_info()["open"] == 0

    def test_closed_pool(self, manager: ConnectionManager, adapter: MagicMock) -> None:
        connection = manager.acquire()
        manager.close_pool()
        manager.release(connection)
        adapter.close.assert_called_once_with(connection)
        assert manager.pool_info()["open"] == 0

    def test_stale_connection_is_recycled(
        self, adapter: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        clock = [1000.0]
        monkeypatch.setattr(
            "row_orm.core.connection.time", SimpleNamespace(monotonic=lambda: clock[0])
        )
        config = ConnectionConfig(driver="sqlite", database=":memory:", pool_recycle=60)
        manager = ConnectionManager(config, adapter)
        old = manager.acquire()
        manager.release(old)

        clock[0] += 61
        fresh = manager.acquire()

        assert fresh is not old
        adapter.close.assert_called_once_with(old)
        assert manager.pool_info()["open"] == 1

    def test_recycle_disabled(self, adapter: MagicMock) -> None:
        config = ConnectionConfig(driver="sqlite", database=":memory:", pool_recycle=0)
        manager = ConnectionManager(config, adapter)
        connection = manager.acquire()
        manager.release(connection)
        assert manager.acquire() is connection
