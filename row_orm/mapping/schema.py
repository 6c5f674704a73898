"""Schema metadata - how a dataclass maps to a table and its columns.

Columns are declared with :func:`column` on dataclass fields, or inferred
from the field annotation. Each type is discovered once, on first use, and
the resulting :class:`TableMapping` is reused for the process lifetime.
"""

from __future__ import annotations

import dataclasses
import inspect
import logging
import re
import threading
import types
import typing
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, TypeVar

from row_orm.core.enums import ScalarKind
from row_orm.core.exceptions import MetadataError

logger = logging.getLogger(__name__)

T = TypeVar("T")

COLUMN_METADATA_KEY = "row_orm.column"

_FROM_PATTERN = re.compile(r"\bfrom\s+([\w.\"`\[\]]+)", re.IGNORECASE)

# Annotation -> kind. bool precedes int because bool subclasses int.
_ANNOTATION_KINDS: tuple[tuple[type, ScalarKind], ...] = (
    (bool, ScalarKind.BOOLEAN),
    (int, ScalarKind.INTEGER),
    (str, ScalarKind.TEXT),
    (Decimal, ScalarKind.DECIMAL),
    (datetime, ScalarKind.TIMESTAMP),
    (bytes, ScalarKind.BLOB),
)

_declared_models: list[type] = []
_declared_lock = threading.Lock()


@dataclass(frozen=True)
class ColumnSpec:
    """Column options declared on a dataclass field."""

    name: str | None = None
    kind: ScalarKind | None = None
    length: int = 0
    precision: int = 0
    scale: int | None = None
    nullable: bool | None = None
    primary_key: bool = False
    auto: bool = False
    definition: str = ""
    transient: bool = False


def column(
    *,
    name: str | None = None,
    kind: ScalarKind | None = None,
    length: int = 0,
    precision: int = 0,
    scale: int | None = None,
    nullable: bool | None = None,
    primary_key: bool = False,
    auto: bool = False,
    definition: str = "",
    transient: bool = False,
    default: Any = dataclasses.MISSING,
    default_factory: Any = dataclasses.MISSING,
) -> Any:
    """Declare column metadata for a dataclass field.

    Args:
        name: Column name. Defaults to the field name.
        kind: Scalar kind. Inferred from the annotation when omitted.
        length: Text length; 0 means the default of 255.
        precision: Decimal precision; 0 means the default of 24.
        scale: Decimal scale; None means the default of 2.
        nullable: Defaults to False for primary keys, True otherwise.
        primary_key: Whether the column is (part of) the primary key.
        auto: Whether the database generates the value on insert.
        definition: Explicit DDL fragment overriding the synthesized one.
        transient: Exclude the field from the mapping entirely.
        default: Dataclass field default.
        default_factory: Dataclass field default factory.
    """
    spec = ColumnSpec(
        name=name,
        kind=kind,
        length=length,
        precision=precision,
        scale=scale,
        nullable=nullable,
        primary_key=primary_key,
        auto=auto,
        definition=definition,
        transient=transient,
    )
    kwargs: dict[str, Any] = {"metadata": {COLUMN_METADATA_KEY: spec}}
    if default is not dataclasses.MISSING:
        kwargs["default"] = default
    if default_factory is not dataclasses.MISSING:
        kwargs["default_factory"] = default_factory
    return dataclasses.field(**kwargs)


def table(name: str) -> Callable[[type[T]], type[T]]:
    """Class decorator naming the table a dataclass maps to.

    Decorated types can also be resolved by table name, which lets untyped
    queries materialize objects.
    """

    def decorate(cls: type[T]) -> type[T]:
        cls.__table_name__ = name  # type: ignore[attr-defined]
        with _declared_lock:
            _declared_models.append(cls)
        return cls

    return decorate


@dataclass(frozen=True)
class ColumnMapping:
    """A single field-to-column binding."""

    field_name: str
    column_name: str
    kind: ScalarKind
    length: int = 0
    precision: int = 0
    scale: int = 0
    nullable: bool = True
    primary_key: bool = False
    auto: bool = False
    definition: str = ""
    getter: Callable[[Any], Any] | None = field(default=None, repr=False, compare=False)
    setter: Callable[[Any, Any], None] | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        # Plain attribute access unless discovery resolved something else
        getter, setter = _attribute_accessors(self.field_name)
        if self.getter is None:
            object.__setattr__(self, "getter", getter)
        if self.setter is None:
            object.__setattr__(self, "setter", setter)

    def get(self, obj: Any) -> Any:
        return self.getter(obj)  # type: ignore[misc]

    def set(self, obj: Any, value: Any) -> None:
        self.setter(obj, value)  # type: ignore[misc]


@dataclass(frozen=True)
class TableMapping:
    """Table binding for one domain type."""

    model: type
    table_name: str
    columns: tuple[ColumnMapping, ...]

    @property
    def model_name(self) -> str:
        return self.model.__name__

    @property
    def primary_keys(self) -> tuple[ColumnMapping, ...]:
        return tuple(c for c in self.columns if c.primary_key)

    @property
    def auto_column(self) -> ColumnMapping | None:
        return next((c for c in self.columns if c.auto), None)

    def column(self, field_name: str) -> ColumnMapping:
        for col in self.columns:
            if col.field_name == field_name:
                return col
        raise KeyError(field_name)

    def key_of(self, obj: Any) -> Any:
        """Primary key value of *obj*; a tuple for composite keys."""
        values = tuple(c.get(obj) for c in self.primary_keys)
        return values[0] if len(values) == 1 else values


def _unwrap_optional(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _infer_kind(annotation: Any) -> ScalarKind | None:
    annotation = _unwrap_optional(annotation)
    if typing.get_origin(annotation) is not None or not isinstance(annotation, type):
        return None
    for candidate, kind in _ANNOTATION_KINDS:
        if issubclass(annotation, candidate):
            return kind
    return None


def _attribute_accessors(name: str) -> tuple[Callable[[Any], Any], Callable[[Any, Any], None]]:
    def getter(obj: Any) -> Any:
        return getattr(obj, name)

    def setter(obj: Any, value: Any) -> None:
        setattr(obj, name, value)

    return getter, setter


def _resolve_accessors(
    model: type, name: str
) -> tuple[Callable[[Any], Any], Callable[[Any, Any], None]]:
    attr = inspect.getattr_static(model, name, None)
    if isinstance(attr, property):
        if attr.fget is None or attr.fset is None:
            raise MetadataError(model.__name__, f"property '{name}' needs a getter and a setter")
        return attr.fget, attr.fset
    if model.__dataclass_params__.frozen:  # type: ignore[attr-defined]
        raise MetadataError(model.__name__, f"field '{name}' of a frozen dataclass cannot be set")
    return _attribute_accessors(name)


def _discover(model: type) -> TableMapping:
    if not dataclasses.is_dataclass(model):
        raise MetadataError(model.__name__, "mapped types must be dataclasses")
    try:
        hints = typing.get_type_hints(model)
    except Exception as e:
        raise MetadataError(model.__name__, f"unresolvable annotations: {e}") from e

    columns: list[ColumnMapping] = []
    for f in dataclasses.fields(model):
        spec: ColumnSpec = f.metadata.get(COLUMN_METADATA_KEY, ColumnSpec())
        if spec.transient:
            continue

        kind = spec.kind or _infer_kind(hints.get(f.name))
        if kind is None:
            raise MetadataError(
                model.__name__, f"field '{f.name}' has no supported scalar kind"
            )
        if kind is ScalarKind.INTEGER and spec.kind is None and spec.auto:
            kind = ScalarKind.LONG

        getter, setter = _resolve_accessors(model, f.name)
        nullable = spec.nullable if spec.nullable is not None else not spec.primary_key
        columns.append(
            ColumnMapping(
                field_name=f.name,
                column_name=spec.name or f.name,
                kind=kind,
                length=(spec.length or 255) if kind is ScalarKind.TEXT else spec.length,
                precision=(spec.precision or 24) if kind is ScalarKind.DECIMAL else spec.precision,
                scale=(2 if spec.scale is None else spec.scale)
                if kind is ScalarKind.DECIMAL
                else (spec.scale or 0),
                nullable=nullable,
                primary_key=spec.primary_key,
                auto=spec.auto,
                definition=spec.definition,
                getter=getter,
                setter=setter,
            )
        )

    if not any(c.primary_key for c in columns):
        raise MetadataError(model.__name__, "no primary key declared")
    if sum(1 for c in columns if c.auto) > 1:
        raise MetadataError(model.__name__, "more than one auto-generated column")

    table_name = model.__dict__.get("__table_name__") or model.__name__.lower()
    return TableMapping(model=model, table_name=table_name, columns=tuple(columns))


class SchemaRegistry:
    """Discovers and memoizes table mappings.

    Discovery is serialized per type, so concurrent first use of a type
    publishes exactly one mapping.
    """

    def __init__(self) -> None:
        self._mappings: dict[type, TableMapping] = {}
        self._locks: dict[type, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, model: type) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(model)
            if lock is None:
                lock = self._locks[model] = threading.Lock()
            return lock

    def mapping_for(self, model: type) -> TableMapping:
        """Return the mapping for *model*, discovering it on first use.

        Raises:
            MetadataError: If the type cannot be mapped.
        """
        mapping = self._mappings.get(model)
        if mapping is not None:
            return mapping
        if not isinstance(model, type):
            raise MetadataError(type(model).__name__, "expected a type, got an instance")

        with self._lock_for(model):
            mapping = self._mappings.get(model)
            if mapping is None:
                mapping = _discover(model)
                self._mappings[model] = mapping
                logger.debug(
                    "Mapped %s to table %s (%d columns)",
                    model.__name__,
                    mapping.table_name,
                    len(mapping.columns),
                )
        return mapping

    def mapping_for_table(self, table_name: str) -> TableMapping | None:
        """Find the mapping of a discovered or declared type by table name."""
        wanted = table_name.strip('"`[]').split(".")[-1].lower()
        for mapping in list(self._mappings.values()):
            if mapping.table_name.lower() == wanted:
                return mapping
        with _declared_lock:
            declared = list(_declared_models)
        for model in declared:
            if model.__dict__.get("__table_name__", "").lower() == wanted:
                return self.mapping_for(model)
        return None

    def mapping_for_sql(self, sql: str) -> TableMapping | None:
        """Resolve the mapping for the first ``FROM`` table of a query."""
        match = _FROM_PATTERN.search(sql)
        if match is None:
            return None
        return self.mapping_for_table(match.group(1))

    def __contains__(self, model: object) -> bool:
        return model in self._mappings

    def __len__(self) -> int:
        return len(self._mappings)


default_registry = SchemaRegistry()
