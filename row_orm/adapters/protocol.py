"""Database adapter protocol.

Every adapter module MUST implement this protocol so the engine can treat
all backends identically.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from row_orm.core.connection import ConnectionConfig


@runtime_checkable
class SyncAdapter(Protocol):
    """Synchronous database adapter protocol."""

    @property
    def paramstyle(self) -> str:
        """Parameter binding style: 'named' (:name) or 'pyformat' (%(name)s)."""
        ...

    def connect(self, config: ConnectionConfig) -> Any:
        """Open a new connection in autocommit mode."""
        ...

    def close(self, connection: Any) -> None:
        """Close a connection."""
        ...

    def set_autocommit(self, connection: Any, enabled: bool) -> None:
        """Switch a connection between autocommit and transactional mode."""
        ...

    def execute(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any] | tuple[Any, ...] | None = None,
    ) -> Any:
        """Execute SQL and return a cursor-like object."""
        ...

    def execute_many(
        self,
        connection: Any,
        sql: str,
        params_seq: Sequence[dict[str, Any]],
    ) -> int:
        """Execute SQL once per parameter set; return affected row count."""
        ...

    def insert_returning_key(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any],
        key_column: str,
    ) -> Any:
        """Execute an INSERT and return the generated value of *key_column*."""
        ...

    def table_exists(self, connection: Any, table_name: str) -> bool:
        """Whether a table with this name exists (case-insensitive)."""
        ...
