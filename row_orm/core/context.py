"""Execution context - the handle that carries one bound connection.

Every engine call accepts an ExecutionContext. Nested calls receive the same
handle, which is how they join the caller's connection and transaction.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from row_orm.core.cache import ObjectCache
    from row_orm.core.transaction import TransactionManager

_REMOVED = object()


class ContextState(Enum):
    IDLE = "idle"
    AUTOCOMMIT = "autocommit"
    TRANSACTIONAL = "transactional"


class ExecutionContext:
    """One connection bound to one logical unit of work.

    A context belongs to the thread that created it. Used as a context
    manager it commits on clean exit and rolls back on exception.
    """

    def __init__(self, manager: TransactionManager) -> None:
        self._manager = manager
        self.connection: Any = None
        self.state = ContextState.IDLE
        self.owner = threading.get_ident()
        self.depth = 0
        self._staged: dict[tuple[int, Any], tuple[ObjectCache, Any]] = {}

    @property
    def bound(self) -> bool:
        return self.connection is not None

    @property
    def in_transaction(self) -> bool:
        return self.state is ContextState.TRANSACTIONAL

    def __enter__(self) -> ExecutionContext:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        if not self.bound:
            return
        if exc_type is not None:
            self._manager.rollback_quietly(self)
        else:
            self._manager.commit(self)

    def commit(self) -> None:
        self._manager.commit(self)

    def rollback(self) -> None:
        self._manager.rollback(self)

    # --- staged cache writes ---

    def stage(self, cache: ObjectCache, key: Any, snapshot: Any) -> None:
        """Hold a cache write until the transaction commits."""
        self._staged[(id(cache), key)] = (cache, snapshot)

    def stage_removal(self, cache: ObjectCache, key: Any) -> None:
        self._staged[(id(cache), key)] = (cache, _REMOVED)

    def staged(self, cache: ObjectCache, key: Any) -> tuple[bool, Any]:
        """Return ``(hit, snapshot)`` for a staged write; None if removed."""
        entry = self._staged.get((id(cache), key))
        if entry is None:
            return False, None
        snapshot = entry[1]
        return True, None if snapshot is _REMOVED else snapshot

    def publish(self) -> None:
        """Apply staged writes to their caches."""
        staged, self._staged = self._staged, {}
        for (_, key), (cache, snapshot) in staged.items():
            if snapshot is _REMOVED:
                cache.discard(key)
            else:
                cache.put(key, snapshot)

    def discard(self) -> None:
        self._staged.clear()

    def __repr__(self) -> str:
        return f"<ExecutionContext state={self.state.value} depth={self.depth}>"
