"""Audit trail of mutations.

Every successful insert, update and delete appends rows to the audit table
through the caller's own execution context, so audit writes commit or roll
back together with the change they describe.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Protocol

from row_orm.core.enums import AuditEvent, ScalarKind
from row_orm.mapping.materializer import coerce_value
from row_orm.mapping.schema import TableMapping

if TYPE_CHECKING:
    from row_orm.core.context import ExecutionContext

logger = logging.getLogger(__name__)

NULL_TEXT = "<NULL>"

AUDIT_COLUMNS: tuple[tuple[str, str], ...] = (
    ("object_key", "varchar2(255) NOT NULL"),
    ("event_time", "timestamp NOT NULL"),
    ("event_type", "varchar2(16) NOT NULL"),
    ("field_name", "varchar2(255)"),
    ("old_value", "varchar2(4000)"),
    ("new_value", "varchar2(4000)"),
)


@dataclass(frozen=True)
class AuditRecord:
    """One row of the audit table."""

    object_key: str
    event_time: datetime
    event_type: AuditEvent
    field_name: str | None = None
    old_value: str | None = None
    new_value: str | None = None


class StatementExecutor(Protocol):
    """The primitive execution surface audit writes go through."""

    def execute_update(
        self,
        sql: str,
        params: Any = None,
        ctx: ExecutionContext | None = None,
    ) -> int: ...

    def query(
        self,
        sql: str,
        params: Any = None,
        bypass_cache: bool = False,
        *,
        model: type | None = None,
        ctx: ExecutionContext | None = None,
    ) -> list[Any]: ...


def as_text(value: Any) -> str:
    """Render a field value for the audit table."""
    if value is None:
        return NULL_TEXT
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return str(value)


def object_key(mapping: TableMapping, object_id: Any = None, obj: Any = None) -> str:
    """The object's own text form when it defines one, else ``Type:id``."""
    if obj is not None and type(obj).__str__ is not object.__str__:
        return str(obj)
    if object_id is None and obj is not None:
        object_id = mapping.key_of(obj)
    return f"{mapping.model_name}:{object_id}"


class AuditRecorder:
    """Writes audit rows on behalf of the engine.

    Args:
        executor: Engine whose ``execute_update`` performs the inserts.
        table_name: Audit table name.
        enabled: When False, ``record`` does nothing.
    """

    def __init__(
        self,
        executor: StatementExecutor,
        table_name: str = "audits",
        enabled: bool = True,
    ) -> None:
        self._executor = executor
        self.table_name = table_name
        self.enabled = enabled
        columns = ", ".join(name for name, _ in AUDIT_COLUMNS)
        placeholders = ", ".join(f":{name}" for name, _ in AUDIT_COLUMNS)
        self._insert_sql = f"INSERT INTO {table_name} ({columns}) VALUES ({placeholders})"

    def is_audited(self, mapping: TableMapping) -> bool:
        return self.enabled and mapping.table_name.lower() != self.table_name.lower()

    def record(
        self,
        event: AuditEvent,
        mapping: TableMapping,
        ctx: ExecutionContext,
        object_id: Any = None,
        obj: Any = None,
        field_name: str | None = None,
        old_value: str | None = None,
        new_value: str | None = None,
    ) -> bool:
        """Insert one audit row through *ctx*. Returns False when skipped."""
        if not self.is_audited(mapping):
            return False

        params = {
            "object_key": object_key(mapping, object_id, obj),
            "event_time": datetime.now(timezone.utc).replace(tzinfo=None),
            "event_type": event.value,
            "field_name": field_name,
            "old_value": old_value,
            "new_value": new_value,
        }
        self._executor.execute_update(self._insert_sql, params, ctx)
        return True

    def records_for(self, key: str, ctx: ExecutionContext | None = None) -> list[AuditRecord]:
        """Audit rows for one object key, oldest first."""
        columns = ", ".join(name for name, _ in AUDIT_COLUMNS)
        rows = self._executor.query(
            f"SELECT {columns} FROM {self.table_name} WHERE object_key = :object_key "
            "ORDER BY event_time",
            {"object_key": key},
            ctx=ctx,
        )
        return [
            AuditRecord(
                object_key=row["object_key"],
                event_time=coerce_value(ScalarKind.TIMESTAMP, row["event_time"]),
                event_type=AuditEvent(row["event_type"]),
                field_name=row["field_name"],
                old_value=row["old_value"],
                new_value=row["new_value"],
            )
            for row in ({str(k).lower(): v for k, v in r.items()} for r in rows)
        ]

    def create_table(self, ctx: ExecutionContext | None = None) -> None:
        defs = ", ".join(f"{name} {ddl}" for name, ddl in AUDIT_COLUMNS)
        self._executor.execute_update(f"CREATE TABLE {self.table_name} ({defs})", None, ctx)
        logger.debug("Created audit table %s", self.table_name)
