"""Connection and transaction lifecycle.

A context is IDLE until a statement or ``start_transaction`` binds a pooled
connection to it. Outside a transaction the connection runs in autocommit
mode and goes back to the pool as soon as the outermost statement scope
ends. Inside a transaction it stays bound, so every statement issued with
the same context (nested audit writes included) joins the same unit of work
until ``commit`` or ``rollback``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from row_orm.core.connection import ConnectionManager
from row_orm.core.context import ContextState, ExecutionContext
from row_orm.core.exceptions import (
    ConnectionAcquisitionFailure,
    OrmError,
    TransactionError,
    TransactionStateError,
)

logger = logging.getLogger(__name__)


class TransactionManager:
    """Binds pooled connections to execution contexts."""

    def __init__(self, connection_manager: ConnectionManager) -> None:
        self._connection_manager = connection_manager
        self._adapter = connection_manager.adapter

    def new_context(self) -> ExecutionContext:
        return ExecutionContext(self)

    def acquire(self, ctx: ExecutionContext | None = None) -> ExecutionContext:
        """Reuse the connection bound to *ctx*, or bind a pooled one.

        Raises:
            TransactionStateError: If *ctx* belongs to another thread.
            ConnectionAcquisitionFailure: If the pool has no connection.
        """
        if ctx is None:
            ctx = self.new_context()
        elif ctx.owner != threading.get_ident():
            raise TransactionStateError(ctx.state.value, "use a context from another thread")

        if ctx.bound:
            return ctx

        ctx.connection = self._connection_manager.acquire()
        ctx.state = ContextState.AUTOCOMMIT
        return ctx

    def start_transaction(self, ctx: ExecutionContext | None = None) -> ExecutionContext:
        """Bind a connection and disable autocommit until commit or rollback."""
        if ctx is not None and ctx.in_transaction:
            raise TransactionStateError(ctx.state.value, "start a transaction")
        ctx = self.acquire(ctx)
        try:
            self._adapter.set_autocommit(ctx.connection, False)
        except Exception as e:
            self.release(ctx)
            raise ConnectionAcquisitionFailure(f"Cannot start transaction: {e}") from e
        ctx.state = ContextState.TRANSACTIONAL
        logger.debug("Transaction started on %r", ctx)
        return ctx

    def commit(self, ctx: ExecutionContext) -> None:
        """Commit and release. Staged cache writes are published on success.

        A connection whose commit fails is closed rather than pooled.

        Raises:
            TransactionStateError: If no connection is bound to *ctx*.
            TransactionError: If the database rejects the commit.
        """
        if not ctx.bound:
            raise TransactionStateError(ctx.state.value, "commit")
        try:
            ctx.connection.commit()
        except Exception as e:
            ctx.discard()
            self.abandon(ctx)
            raise TransactionError(f"Commit failed: {e}") from e
        ctx.publish()
        self.release(ctx)

    def rollback(self, ctx: ExecutionContext) -> None:
        """Roll back and release. Staged cache writes are dropped.

        A connection whose rollback fails is closed rather than pooled, since
        restoring autocommit would commit whatever it still holds.

        Raises:
            TransactionStateError: If no connection is bound to *ctx*.
            TransactionError: If the database rejects the rollback.
        """
        if not ctx.bound:
            raise TransactionStateError(ctx.state.value, "rollback")
        ctx.discard()
        if ctx.in_transaction:
            try:
                ctx.connection.rollback()
            except Exception as e:
                self.abandon(ctx)
                raise TransactionError(f"Rollback failed: {e}") from e
        self.release(ctx)

    def rollback_quietly(self, ctx: ExecutionContext) -> None:
        """Roll back after a failure; a failing rollback is only logged."""
        if not ctx.bound:
            return
        try:
            self.rollback(ctx)
        except OrmError:
            logger.exception("Rollback failed while handling an earlier error")

    def release(self, ctx: ExecutionContext) -> None:
        """Restore autocommit and return the connection to the pool."""
        connection = ctx.connection
        if connection is None:
            return
        ctx.connection = None
        ctx.state = ContextState.IDLE
        ctx.depth = 0
        try:
            self._adapter.set_autocommit(connection, True)
        except Exception:
            logger.warning("Discarding connection that could not be reset", exc_info=True)
            self._connection_manager.discard(connection)
        else:
            self._connection_manager.release(connection)

    def abandon(self, ctx: ExecutionContext) -> None:
        """Unbind the connection and close it without resetting it."""
        connection = ctx.connection
        if connection is None:
            return
        ctx.connection = None
        ctx.state = ContextState.IDLE
        ctx.depth = 0
        logger.warning("Closing connection left in an unknown transaction state")
        self._connection_manager.discard(connection)

    @contextmanager
    def statement(self, ctx: ExecutionContext | None = None) -> Iterator[ExecutionContext]:
        """Scope of one statement (and anything nested inside it).

        The outermost scope of a non-transactional context releases the
        connection on exit. Any exception rolls the context back before it
        propagates.
        """
        ctx = self.acquire(ctx)
        ctx.depth += 1
        try:
            yield ctx
        except BaseException:
            self.rollback_quietly(ctx)
            raise
        if ctx.bound:
            ctx.depth -= 1
            if ctx.depth == 0 and not ctx.in_transaction:
                self.release(ctx)
