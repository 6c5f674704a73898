"""Unit tests for ResultMaterializer and value coercion."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

import pytest

from row_orm.core.cache import ObjectCache
from row_orm.core.enums import ScalarKind
from row_orm.core.exceptions import ColumnMismatchError
from row_orm.mapping.materializer import ResultMaterializer, coerce_value
from row_orm.mapping.schema import SchemaRegistry, column


@dataclass
class Invoice:
    id: int = column(primary_key=True)
    customer: str = column(name="customer_name", default="")
    total: Decimal | None = None
    issued: datetime | None = None
    paid: bool = False
    scan: bytes | None = None
    lines: list[str] = column(transient=True, default_factory=list)


@pytest.fixture
def registry() -> SchemaRegistry:
    return SchemaRegistry()


class TestCoerceValue:
    def test_null_stays_null(self) -> None:
        assert coerce_value(ScalarKind.INTEGER, None) is None

    def test_sqlite_representations(self) -> None:
        assert coerce_value(ScalarKind.BOOLEAN, 1) is True
        assert coerce_value(ScalarKind.DECIMAL, 12.5) == Decimal("12.5")
        assert coerce_value(ScalarKind.TIMESTAMP, "2024-05-01 10:30:00.250000") == datetime(
            2024, 5, 1, 10, 30, 0, 250000
        )
        assert coerce_value(ScalarKind.BLOB, memoryview(b"ab")) == b"ab"
        assert coerce_value(ScalarKind.TEXT, 42) == "42"

    def test_invalid_value(self) -> None:
        with pytest.raises(ValueError):
            coerce_value(ScalarKind.INTEGER, "not a number")


class TestMaterialize:
    def test_row_to_instance(self, registry: SchemaRegistry) -> None:
        mapping = registry.mapping_for(Invoice)
        rows = [
            {
                "ID": 7,
                "CUSTOMER_NAME": "Ada",
                "total": "19.90",
                "issued": "2024-05-01 10:30:00",
                "paid": 0,
                "scan": None,
                "extra": "ignored",
            }
        ]

        [invoice] = ResultMaterializer().materialize(mapping, rows)

        assert invoice == Invoice(
            id=7,
            customer="Ada",
            total=Decimal("19.90"),
            issued=datetime(2024, 5, 1, 10, 30),
            paid=False,
        )
        assert invoice.lines == []

    def test_missing_columns_keep_defaults(self, registry: SchemaRegistry) -> None:
        mapping = registry.mapping_for(Invoice)
        instance, complete = ResultMaterializer().map_one(mapping, {"id": 1})
        assert complete is False
        assert instance.customer == ""
        assert instance.paid is False

    def test_coercion_failure(self, registry: SchemaRegistry) -> None:
        mapping = registry.mapping_for(Invoice)
        with pytest.raises(ColumnMismatchError) as exc_info:
            ResultMaterializer().materialize(mapping, [{"id": "abc"}])
        assert exc_info.value.column == "id"
        assert exc_info.value.target_class == "Invoice"

    def test_complete_rows_refresh_cache(self, registry: SchemaRegistry) -> None:
        cache = ObjectCache(registry)
        mapping = registry.mapping_for(Invoice)
        full = {
            "id": 1,
            "customer_name": "Ada",
            "total": None,
            "issued": None,
            "paid": 1,
            "scan": None,
        }

        [invoice] = ResultMaterializer(cache).materialize(mapping, [full, {"id": 2}])[:1]

        assert cache.get(Invoice, 1) == invoice
        assert cache.get(Invoice, 1) is not invoice
        assert (Invoice, 2) not in cache

    def test_cache_bypass(self, registry: SchemaRegistry) -> None:
        cache = ObjectCache(registry)
        mapping = registry.mapping_for(Invoice)
        row = {"id": 1, "customer_name": "", "total": None, "issued": None, "paid": 0, "scan": None}
        ResultMaterializer(cache).materialize(mapping, [row], use_cache=False)
        assert len(cache) == 0

    def test_fresh_instance_per_row(self, registry: SchemaRegistry) -> None:
        cache = ObjectCache(registry)
        mapping = registry.mapping_for(Invoice)
        row = {"id": 1, "customer_name": "", "total": None, "issued": None, "paid": 0, "scan": None}
        first = ResultMaterializer(cache).materialize(mapping, [row])[0]
        second = ResultMaterializer(cache).materialize(mapping, [row])[0]
        assert first is not second
