"""Statement synthesis - INSERT/UPDATE/DELETE SQL from table mappings.

Statements use `:field_name` placeholders; the engine converts them to the
adapter's parameter style. Updates are diff-based: only columns that differ
from the cached snapshot are written, and an update with nothing to write
produces no statement at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from row_orm.core.enums import ScalarKind
from row_orm.core.params import BoundParameter, bind
from row_orm.mapping.schema import ColumnMapping, TableMapping

if TYPE_CHECKING:
    from row_orm.core.cache import ObjectCache
    from row_orm.core.context import ExecutionContext

_TYPE_CLAUSES: dict[ScalarKind, str] = {
    ScalarKind.INTEGER: "integer",
    ScalarKind.LONG: "bigint",
    ScalarKind.TIMESTAMP: "timestamp",
    ScalarKind.BLOB: "blob",
    ScalarKind.BOOLEAN: "boolean",
}


@dataclass(frozen=True)
class FieldDelta:
    """One changed field of an update."""

    field_name: str
    old_value: Any
    new_value: Any


@dataclass(frozen=True)
class StatementPlan:
    """Synthesized SQL with its ordered, bound parameters."""

    sql: str
    params: tuple[BoundParameter, ...] = ()
    deltas: tuple[FieldDelta, ...] = ()
    returning: str | None = None

    def as_params(self) -> dict[str, Any]:
        return {p.name: p.value for p in self.params}


def column_definition(col: ColumnMapping) -> str:
    """DDL fragment for a column: ``<type>[ PRIMARY KEY][ NOT NULL]``."""
    if col.definition:
        return col.definition

    if col.kind is ScalarKind.TEXT:
        ddl = f"varchar2({col.length or 255})"
    elif col.kind is ScalarKind.DECIMAL:
        ddl = f"decimal({col.precision or 24},{col.scale})"
    else:
        ddl = _TYPE_CLAUSES[col.kind]

    if col.primary_key:
        ddl += " PRIMARY KEY"
    if not col.nullable:
        ddl += " NOT NULL"
    return ddl


def _key_clause(mapping: TableMapping) -> str:
    return " AND ".join(f"{c.column_name} = :{c.field_name}" for c in mapping.primary_keys)


def _key_params(mapping: TableMapping, obj: Any) -> tuple[BoundParameter, ...]:
    return tuple(bind(c.field_name, c.get(obj), c.kind) for c in mapping.primary_keys)


class StatementSynthesizer:
    """Builds statement plans from mappings and object state.

    Args:
        cache: Cache holding the snapshots updates are diffed against. With no
            cache every non-null column counts as changed.
    """

    def __init__(self, cache: ObjectCache | None = None) -> None:
        self._cache = cache

    def build_insert(self, mapping: TableMapping, obj: Any) -> StatementPlan:
        """INSERT for every non-generated column, asking for the generated key."""
        cols = [c for c in mapping.columns if not c.auto]
        auto = mapping.auto_column
        returning = auto.column_name if auto is not None else None

        if not cols:
            return StatementPlan(
                f"INSERT INTO {mapping.table_name} DEFAULT VALUES", returning=returning
            )

        names = ", ".join(c.column_name for c in cols)
        placeholders = ", ".join(f":{c.field_name}" for c in cols)
        params = tuple(bind(c.field_name, c.get(obj), c.kind) for c in cols)
        return StatementPlan(
            f"INSERT INTO {mapping.table_name} ({names}) VALUES ({placeholders})",
            params,
            returning=returning,
        )

    def build_update(
        self,
        mapping: TableMapping,
        obj: Any,
        ctx: ExecutionContext | None = None,
    ) -> StatementPlan | None:
        """UPDATE of the columns that changed since the cached snapshot.

        Returns None when no column changed.
        """
        snapshot = None
        if self._cache is not None:
            snapshot = self._cache.lookup(ctx, mapping.model, mapping.key_of(obj))

        changed: list[ColumnMapping] = []
        deltas: list[FieldDelta] = []
        for col in mapping.columns:
            if col.primary_key:
                continue
            new_value = col.get(obj)
            old_value = col.get(snapshot) if snapshot is not None else None
            if snapshot is None and new_value is None:
                continue
            if snapshot is not None and new_value == old_value:
                continue
            changed.append(col)
            deltas.append(FieldDelta(col.field_name, old_value, new_value))

        if not changed:
            return None

        assignments = ", ".join(f"{c.column_name} = :{c.field_name}" for c in changed)
        params = tuple(bind(c.field_name, c.get(obj), c.kind) for c in changed)
        return StatementPlan(
            f"UPDATE {mapping.table_name} SET {assignments} WHERE {_key_clause(mapping)}",
            params + _key_params(mapping, obj),
            tuple(deltas),
        )

    def build_delete(self, mapping: TableMapping, obj: Any) -> StatementPlan:
        return StatementPlan(
            f"DELETE FROM {mapping.table_name} WHERE {_key_clause(mapping)}",
            _key_params(mapping, obj),
        )

    def build_select_by_key(self, mapping: TableMapping, key: Any) -> StatementPlan:
        """SELECT of every mapped column for one primary key value."""
        pks = mapping.primary_keys
        values = key if len(pks) > 1 else (key,)
        if len(values) != len(pks):
            raise ValueError(
                f"{mapping.model_name} has {len(pks)} key columns, got {len(values)} values"
            )
        names = ", ".join(c.column_name for c in mapping.columns)
        params = tuple(bind(c.field_name, v, c.kind) for c, v in zip(pks, values, strict=True))
        return StatementPlan(
            f"SELECT {names} FROM {mapping.table_name} WHERE {_key_clause(mapping)}",
            params,
        )

    def build_create_table(self, mapping: TableMapping) -> str:
        defs = ", ".join(f"{c.column_name} {column_definition(c)}" for c in mapping.columns)
        return f"CREATE TABLE {mapping.table_name} ({defs})"
