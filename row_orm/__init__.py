"""row_orm - metadata-driven object-relational mapping engine."""

from __future__ import annotations

from row_orm.core.audit import AuditRecord, AuditRecorder
from row_orm.core.cache import ObjectCache
from row_orm.core.connection import ConnectionConfig, ConnectionManager
from row_orm.core.context import ContextState, ExecutionContext
from row_orm.core.engine import Engine, EngineOptions
from row_orm.core.enums import AuditEvent, DatabaseBackend, ParamKind, ScalarKind
from row_orm.core.exceptions import (
    AdapterError,
    ColumnMismatchError,
    ConnectionAcquisitionFailure,
    ExecutionError,
    GeneratedKeyError,
    MappingError,
    MetadataError,
    OrmError,
    ParameterBindingError,
    PoolError,
    StatementExecutionFailure,
    TransactionError,
    TransactionStateError,
    UnsupportedParameterType,
)
from row_orm.core.transaction import TransactionManager
from row_orm.mapping.materializer import ResultMaterializer
from row_orm.mapping.schema import SchemaRegistry, TableMapping, column, table
from row_orm.mapping.statement import StatementSynthesizer
from row_orm.repository.base import Repository

__all__ = [
    # Connection
    "ConnectionConfig",
    "ConnectionManager",
    # Engine
    "Engine",
    "EngineOptions",
    # Context / transaction
    "ExecutionContext",
    "ContextState",
    "TransactionManager",
    # Schema
    "SchemaRegistry",
    "TableMapping",
    "column",
    "table",
    # Statements and rows
    "StatementSynthesizer",
    "ResultMaterializer",
    # Cache and audit
    "ObjectCache",
    "AuditRecorder",
    "AuditRecord",
    # Repository
    "Repository",
    # Enums
    "DatabaseBackend",
    "ScalarKind",
    "ParamKind",
    "AuditEvent",
    # Exceptions
    "OrmError",
    "MetadataError",
    "MappingError",
    "ColumnMismatchError",
    "ExecutionError",
    "StatementExecutionFailure",
    "GeneratedKeyError",
    "ParameterBindingError",
    "UnsupportedParameterType",
    "TransactionError",
    "TransactionStateError",
    "AdapterError",
    "ConnectionAcquisitionFailure",
    "PoolError",
]
