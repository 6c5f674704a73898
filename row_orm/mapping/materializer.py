"""Row-to-object materialization.

Every row becomes a fresh instance populated column by column through the
mapping's mutators. Values are coerced to each column's scalar kind with
Pydantic lax validation, so driver representations (SQLite timestamps as
text, decimals as floats, booleans as 0/1) come back as the declared type.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter, ValidationError

from row_orm.core.enums import ScalarKind
from row_orm.core.exceptions import ColumnMismatchError
from row_orm.mapping.schema import TableMapping

if TYPE_CHECKING:
    from row_orm.core.cache import ObjectCache
    from row_orm.core.context import ExecutionContext

_VALIDATORS: dict[ScalarKind, TypeAdapter[Any]] = {
    ScalarKind.INTEGER: TypeAdapter(int),
    ScalarKind.LONG: TypeAdapter(int),
    ScalarKind.DECIMAL: TypeAdapter(Decimal),
    ScalarKind.TIMESTAMP: TypeAdapter(datetime),
    ScalarKind.BOOLEAN: TypeAdapter(bool),
}


def coerce_value(kind: ScalarKind, value: Any) -> Any:
    """Coerce a raw column value to *kind*. NULL stays None.

    Raises:
        ValueError: If the value cannot represent the kind.
    """
    if value is None:
        return None
    if kind is ScalarKind.TEXT:
        return value if isinstance(value, str) else str(value)
    if kind is ScalarKind.BLOB:
        if isinstance(value, (bytearray, memoryview)):
            return bytes(value)
        if isinstance(value, str):
            return value.encode()
        return value
    try:
        return _VALIDATORS[kind].validate_python(value)
    except ValidationError as e:
        raise ValueError(str(e)) from e


def _field_default(f: dataclasses.Field[Any]) -> Any:
    if f.default is not dataclasses.MISSING:
        return f.default
    if f.default_factory is not dataclasses.MISSING:
        return f.default_factory()
    return None


class ResultMaterializer:
    """Turns row dicts into instances of a mapped type.

    Args:
        cache: Cache that receives each fully materialized object.
    """

    def __init__(self, cache: ObjectCache | None = None) -> None:
        self._cache = cache

    def map_one(self, mapping: TableMapping, row: dict[str, Any]) -> tuple[Any, bool]:
        """Build one instance; also report whether every column was present."""
        model = mapping.model
        instance = model.__new__(model)
        for f in dataclasses.fields(model):
            object.__setattr__(instance, f.name, _field_default(f))

        lowered = {str(k).lower(): v for k, v in row.items()}
        complete = True
        for col in mapping.columns:
            name = col.column_name.lower()
            if name not in lowered:
                complete = False
                continue
            try:
                value = coerce_value(col.kind, lowered[name])
            except ValueError as e:
                raise ColumnMismatchError(mapping.model_name, col.column_name, str(e)) from e
            col.set(instance, value)
        return instance, complete

    def materialize(
        self,
        mapping: TableMapping,
        rows: list[dict[str, Any]],
        use_cache: bool = True,
        ctx: ExecutionContext | None = None,
    ) -> list[Any]:
        """Materialize all rows, refreshing the cache for complete rows."""
        results = []
        for row in rows:
            instance, complete = self.map_one(mapping, row)
            if use_cache and complete and self._cache is not None:
                self._cache.stage_set(ctx, instance)
            results.append(instance)
        return results
