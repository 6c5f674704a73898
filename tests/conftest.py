"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

import pytest

from row_orm.core.cache import ObjectCache
from row_orm.core.connection import ConnectionConfig, ConnectionManager
from row_orm.core.engine import Engine, EngineOptions
from row_orm.mapping.schema import SchemaRegistry, column


@dataclass
class Person:
    id: int | None = column(
        primary_key=True,
        auto=True,
        definition="integer PRIMARY KEY AUTOINCREMENT",
        default=None,
    )
    name: str = ""
    age: int = 0


@pytest.fixture
def sqlite_config() -> ConnectionConfig:
    """SQLite in-memory connection config."""
    return ConnectionConfig(driver="sqlite", database=":memory:", pool_size=1, pool_timeout=1)


@pytest.fixture
def registry() -> SchemaRegistry:
    return SchemaRegistry()


@pytest.fixture
def cache(registry: SchemaRegistry) -> ObjectCache:
    return ObjectCache(registry)


@pytest.fixture
def engine(
    sqlite_config: ConnectionConfig,
    registry: SchemaRegistry,
    cache: ObjectCache,
) -> Iterator[Engine]:
    """Engine over a fresh in-memory database with the person and audit tables."""
    eng = Engine(
        ConnectionManager(sqlite_config),
        EngineOptions(),
        registry=registry,
        cache=cache,
    )
    eng.audit.create_table()
    eng.create_table(Person)
    yield eng
    eng.close()


@pytest.fixture
def person_model() -> type[Person]:
    return Person
