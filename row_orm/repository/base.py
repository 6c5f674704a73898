"""Repository base class.

Thin typed wrapper over Engine for DDD-oriented usage.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from row_orm.core.context import ExecutionContext
from row_orm.mapping.schema import TableMapping

T = TypeVar("T")


class Repository(Generic[T]):
    """Base repository class for one mapped type.

    Subclasses add concrete finder methods on top of :meth:`find`.

    Args:
        engine: Engine the repository delegates to.
        model: The mapped dataclass.
    """

    def __init__(self, engine: Any, model: type[T]) -> None:
        self.engine = engine
        self.model = model

    @property
    def mapping(self) -> TableMapping:
        return self.engine.registry.mapping_for(self.model)

    def get(self, key: Any, ctx: ExecutionContext | None = None) -> T | None:
        return self.engine.get(self.model, key, ctx=ctx)

    def find(
        self,
        where: str = "",
        params: Any = None,
        ctx: ExecutionContext | None = None,
    ) -> list[T]:
        """Objects matching an optional SQL ``WHERE`` condition."""
        mapping = self.mapping
        names = ", ".join(c.column_name for c in mapping.columns)
        sql = f"SELECT {names} FROM {mapping.table_name}"
        if where:
            sql += f" WHERE {where}"
        return self.engine.query(sql, params, model=self.model, ctx=ctx)

    def find_all(self, ctx: ExecutionContext | None = None) -> list[T]:
        return self.find(ctx=ctx)

    def save(self, obj: T, ctx: ExecutionContext | None = None) -> Any:
        """Insert *obj* when it has no key yet, otherwise update it."""
        key = self.mapping.key_of(obj)
        missing = key is None or (isinstance(key, tuple) and None in key)
        if missing:
            return self.engine.insert(obj, ctx)
        return self.engine.update(obj, ctx)

    def remove(self, obj: T, ctx: ExecutionContext | None = None) -> int:
        return self.engine.delete(obj, ctx)
