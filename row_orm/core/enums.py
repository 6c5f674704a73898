"""Enumerations shared across the engine."""

from __future__ import annotations

from enum import Enum


class DatabaseBackend(Enum):
    """Supported database backends."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    ORACLE = "oracle"


class ScalarKind(Enum):
    """Scalar kinds a mapped column can hold."""

    TEXT = "text"
    INTEGER = "integer"
    LONG = "long"
    DECIMAL = "decimal"
    TIMESTAMP = "timestamp"
    BLOB = "blob"
    BOOLEAN = "boolean"


class ParamKind(Enum):
    """Closed set of kinds a bound statement parameter can take."""

    TEXT = "text"
    INTEGER = "integer"
    LONG = "long"
    DECIMAL = "decimal"
    TIMESTAMP = "timestamp"
    BLOB = "blob"
    BOOLEAN = "boolean"
    NULL = "null"


class AuditEvent(Enum):
    """Mutation events written to the audit table."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
