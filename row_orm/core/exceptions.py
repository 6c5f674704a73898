"""row_orm exception hierarchy.

All exceptions are row_orm-specific. Raw driver exceptions are never
exposed to callers; they are chained as ``__cause__``.
"""

from __future__ import annotations

from typing import Any


class OrmError(Exception):
    """Base exception for all row_orm errors."""


# --- Metadata ---


class MetadataError(OrmError):
    """Raised when a type cannot be mapped to a table."""

    def __init__(self, type_name: str, detail: str) -> None:
        self.type_name = type_name
        super().__init__(f"Cannot map {type_name}: {detail}")


# --- Mapping ---


class MappingError(OrmError):
    """Base for row-to-object mapping errors."""


class ColumnMismatchError(MappingError):
    """Raised when a column value cannot be coerced to its field's kind."""

    def __init__(self, target_class: str, column: str, detail: str) -> None:
        self.target_class = target_class
        self.column = column
        super().__init__(f"Cannot map column '{column}' to {target_class}: {detail}")


# --- Execution ---


class ExecutionError(OrmError):
    """Base for statement execution errors."""


class StatementExecutionFailure(ExecutionError):
    """Raised when the database rejects a statement."""

    def __init__(self, sql: str, detail: str) -> None:
        self.sql = sql
        super().__init__(f"Statement failed: {detail} [{sql}]")


class GeneratedKeyError(StatementExecutionFailure):
    """Raised when an insert ran but no generated key came back."""

    def __init__(self, sql: str) -> None:
        super().__init__(sql, "no generated key was returned")


class ParameterBindingError(ExecutionError):
    """Raised on parameter binding failures."""

    def __init__(self, name: str, detail: str) -> None:
        self.name = name
        super().__init__(f"Parameter binding error for '{name}': {detail}")


class UnsupportedParameterType(ParameterBindingError):
    """Raised when a value falls outside the supported scalar kinds."""

    def __init__(self, name: str, value: Any) -> None:
        self.value_type = type(value)
        super().__init__(name, f"unsupported type {type(value).__name__}")


# --- Transaction ---


class TransactionError(OrmError):
    """Base for transaction errors."""


class TransactionStateError(TransactionError):
    """Raised on invalid transaction state transitions."""

    def __init__(self, current_state: str, attempted_action: str) -> None:
        self.current_state = current_state
        self.attempted_action = attempted_action
        super().__init__(f"Cannot {attempted_action} in state '{current_state}'")


# --- Adapter ---


class AdapterError(OrmError):
    """Base for adapter errors."""


class ConnectionAcquisitionFailure(AdapterError):
    """Raised when no connection could be obtained from the pool."""


class PoolError(AdapterError):
    """Raised on connection pool failures."""
