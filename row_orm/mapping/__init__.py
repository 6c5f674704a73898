"""Mapping layer - table metadata, statement synthesis and row materialization."""

from __future__ import annotations

from row_orm.mapping.materializer import ResultMaterializer, coerce_value
from row_orm.mapping.schema import (
    ColumnMapping,
    SchemaRegistry,
    TableMapping,
    column,
    default_registry,
    table,
)
from row_orm.mapping.statement import FieldDelta, StatementPlan, StatementSynthesizer

__all__ = [
    "SchemaRegistry",
    "TableMapping",
    "ColumnMapping",
    "column",
    "table",
    "default_registry",
    "StatementSynthesizer",
    "StatementPlan",
    "FieldDelta",
    "ResultMaterializer",
    "coerce_value",
]
