"""Unit tests for the Repository base class."""

from __future__ import annotations

from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest

from row_orm.mapping.schema import SchemaRegistry, column
from row_orm.repository.base import Repository


@dataclass
class User:
    id: int | None = column(primary_key=True, auto=True, default=None)
    name: str = ""


@pytest.fixture
def engine() -> MagicMock:
    mock = MagicMock()
    mock.registry = SchemaRegistry()
    return mock


class TestRepository:
    def test_engine_attribute(self, engine: MagicMock) -> None:
        repo = Repository(engine, User)
        assert repo.engine is engine
        assert repo.mapping.table_name == "user"

    def test_get_delegates(self, engine: MagicMock) -> None:
        Repository(engine, User).get(5)
        engine.get.assert_called_once_with(User, 5, ctx=None)

    def test_find_builds_select(self, engine: MagicMock) -> None:
        Repository(engine, User).find("name = :name", {"name": "Ada"})
        engine.query.assert_called_once_with(
            "SELECT id, name FROM user WHERE name = :name",
            {"name": "Ada"},
            model=User,
            ctx=None,
        )

    def test_find_all(self, engine: MagicMock) -> None:
        Repository(engine, User).find_all()
        assert engine.query.call_args.args == ("SELECT id, name FROM user", None)

    def test_save_inserts_new_objects(self, engine: MagicMock) -> None:
        user = User(name="Ada")
        Repository(engine, User).save(user)
        engine.insert.assert_called_once_with(user, None)
        engine.update.assert_not_called()

    def test_save_updates_existing_objects(self, engine: MagicMock) -> None:
        user = User(id=3, name="Ada")
        Repository(engine, User).save(user)
        engine.update.assert_called_once_with(user, None)

    def test_remove(self, engine: MagicMock) -> None:
        user = User(id=3)
        Repository(engine, User).remove(user)
        engine.delete.assert_called_once_with(user, None)
