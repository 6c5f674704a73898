"""
Example 01: Basic CRUD

This example maps a dataclass to a table, then inserts, queries, updates
and deletes objects while the audit trail records every change.
"""

import logging
import tempfile
from dataclasses import dataclass

from row_orm import ConnectionConfig, Engine, column, table


@table("person")
@dataclass
class Person:
    id: int | None = column(
        primary_key=True,
        auto=True,
        definition="integer PRIMARY KEY AUTOINCREMENT",
        default=None,
    )
    name: str = column(length=100, nullable=False, default="")
    age: int = 0


def main():
    logging.basicConfig(level=logging.INFO)

    db_file = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
    db_path = db_file.name
    db_file.close()

    engine = Engine.from_config(ConnectionConfig(driver="sqlite", database=db_path))
    engine.audit.create_table()
    engine.create_table(Person)

    print("=== Basic CRUD ===\n")

    ada = Person(name="Ada", age=30)
    key = engine.insert(ada)
    print(f"1. Inserted {ada} with generated id {key}")

    print(f"2. Fetched by id: {engine.get(Person, key)}")

    ada.age = 31
    print(f"3. Updated rows: {engine.update(ada)}")
    print(f"   Update again without changes: {engine.update(ada)} rows")

    people = engine.query("SELECT * FROM person WHERE age > :age", {"age": 18})
    print(f"4. Adults: {people}")

    print(f"5. Deleted rows: {engine.delete(ada)}")

    print("\n6. Audit trail:")
    for record in engine.audit.records_for(f"Person:{key}"):
        print(f"   {record.event_type.value:<7} {record.field_name or '-'}: "
              f"{record.old_value} -> {record.new_value}")

    engine.close()


if __name__ == "__main__":
    main()
