"""Engine - the primitive and object-level execution surfaces.

Every method takes an optional ExecutionContext. Without one, a statement
runs as its own autocommit unit on a pooled connection and an object write
runs in a short transaction with its audit rows; with one, the call joins
whatever the context is doing, including an open transaction. Nested work
(audit rows, cache refreshes) always receives the caller's context.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from pydantic import BaseModel

from row_orm.core.audit import AuditRecorder, as_text
from row_orm.core.cache import ObjectCache, default_cache
from row_orm.core.connection import ConnectionConfig, ConnectionManager
from row_orm.core.context import ExecutionContext
from row_orm.core.enums import AuditEvent
from row_orm.core.exceptions import (
    GeneratedKeyError,
    OrmError,
    StatementExecutionFailure,
)
from row_orm.core.params import bind_params, normalize_params
from row_orm.core.transaction import TransactionManager
from row_orm.mapping.materializer import ResultMaterializer
from row_orm.mapping.schema import SchemaRegistry, TableMapping, default_registry
from row_orm.mapping.statement import StatementPlan, StatementSynthesizer

logger = logging.getLogger(__name__)


class EngineOptions(BaseModel):
    """Behavioral switches for an Engine."""

    enable_cache: bool = True
    audit_enabled: bool = True
    audit_table: str = "audits"
    slow_query_threshold_ms: int = 100


def _rows_to_dicts(cursor: Any) -> list[dict[str, Any]]:
    """Convert cursor results to list of dicts.

    Handles both tuple-like rows and dict-like rows from different adapters.
    """
    if cursor.description is None:
        return []
    columns = [desc[0] for desc in cursor.description]
    rows = cursor.fetchall()
    if not rows:
        return []

    # Check if rows are already dict-like (e.g., psycopg dict_row, MySQL dict cursor)
    first_row = rows[0]
    if isinstance(first_row, dict):
        return [dict(row) for row in rows]

    return [dict(zip(columns, row, strict=True)) for row in rows]


def _carries_key(mapping: TableMapping, cursor: Any) -> bool:
    if cursor.description is None:
        return False
    names = {str(desc[0]).lower() for desc in cursor.description}
    return all(c.column_name.lower() in names for c in mapping.primary_keys)


class Engine:
    """Synchronous object-relational execution engine."""

    def __init__(
        self,
        connection_manager: ConnectionManager,
        options: EngineOptions | None = None,
        *,
        registry: SchemaRegistry | None = None,
        cache: ObjectCache | None = None,
    ) -> None:
        self._connection_manager = connection_manager
        self._adapter = connection_manager.adapter
        self._paramstyle = connection_manager.adapter.paramstyle
        self.options = options if options is not None else EngineOptions()
        self.registry = registry if registry is not None else default_registry
        self.cache = cache if cache is not None else default_cache
        self.transactions = TransactionManager(connection_manager)
        self.synthesizer = StatementSynthesizer(self.cache if self.options.enable_cache else None)
        self.materializer = ResultMaterializer(self.cache)
        self.audit = AuditRecorder(
            self, table_name=self.options.audit_table, enabled=self.options.audit_enabled
        )

    @classmethod
    def from_config(
        cls,
        config: ConnectionConfig,
        options: EngineOptions | None = None,
    ) -> Engine:
        """Create an Engine from a ConnectionConfig.

        Args:
            config: ConnectionConfig instance
            options: EngineOptions instance

        Returns:
            Engine instance
        """
        return cls(ConnectionManager(config), options)

    @property
    def connection_manager(self) -> ConnectionManager:
        return self._connection_manager

    def close(self) -> None:
        """Close the connection pool."""
        self._connection_manager.close_pool()

    def pool_info(self) -> dict[str, int]:
        return self._connection_manager.pool_info()

    # --- transactions ---

    def start_transaction(self, ctx: ExecutionContext | None = None) -> ExecutionContext:
        """Open a transaction; pass the returned context to every call in it."""
        return self.transactions.start_transaction(ctx)

    def commit(self, ctx: ExecutionContext) -> None:
        self.transactions.commit(ctx)

    def rollback(self, ctx: ExecutionContext) -> None:
        self.transactions.rollback(ctx)

    @contextmanager
    def transaction(self) -> Iterator[ExecutionContext]:
        """Transaction scope: commit on success, rollback on exception."""
        with self.start_transaction() as ctx:
            yield ctx

    @contextmanager
    def _mutation(self, ctx: ExecutionContext | None) -> Iterator[ExecutionContext]:
        """Scope of one object write together with its audit rows.

        A bound context is joined as is. Otherwise the write runs in its own
        short transaction, so a failing audit insert or key read leaves
        nothing behind.
        """
        if ctx is not None and ctx.bound:
            with self.transactions.statement(ctx) as bound:
                yield bound
            return
        unit = self.start_transaction(ctx)
        with self.transactions.statement(unit) as bound:
            yield bound
        self.transactions.commit(unit)

    # --- statement plumbing ---

    def _timed(self, sql: str, params: Any, run: Any) -> Any:
        start = time.perf_counter()
        try:
            return run()
        except OrmError:
            raise
        except Exception as e:
            raise StatementExecutionFailure(sql, str(e)) from e
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            if elapsed_ms >= self.options.slow_query_threshold_ms:
                logger.warning("Slow query took %d ms: %s. Params: %s", elapsed_ms, sql, params)

    def _prepare(self, sql: str, params: Any) -> tuple[str, Any]:
        bound = bind_params(params)
        if isinstance(bound, dict):
            sql = normalize_params(sql, self._paramstyle)
        return sql, bound

    def _run(self, ctx: ExecutionContext, sql: str, params: Any = None) -> Any:
        sql, bound = self._prepare(sql, params)
        return self._timed(sql, bound, lambda: self._adapter.execute(ctx.connection, sql, bound))

    def _run_query(
        self, ctx: ExecutionContext, sql: str, params: Any = None
    ) -> tuple[Any, list[dict[str, Any]]]:
        """Execute and fetch every row; fetch errors are wrapped like execute errors."""
        sql, bound = self._prepare(sql, params)

        def run() -> tuple[Any, list[dict[str, Any]]]:
            cursor = self._adapter.execute(ctx.connection, sql, bound)
            return cursor, _rows_to_dicts(cursor)

        return self._timed(sql, bound, run)

    def _run_plan(self, ctx: ExecutionContext, plan: StatementPlan) -> Any:
        sql = normalize_params(plan.sql, self._paramstyle)
        params = plan.as_params()
        return self._timed(sql, params, lambda: self._adapter.execute(ctx.connection, sql, params))

    # --- primitive surface ---

    def execute_update(
        self,
        sql: str,
        params: Any = None,
        ctx: ExecutionContext | None = None,
    ) -> int:
        """Execute INSERT/UPDATE/DELETE or DDL. Returns affected row count."""
        with self.transactions.statement(ctx) as bound:
            cursor = self._run(bound, sql, params)
            return max(int(cursor.rowcount), 0)

    def execute(self, sql: str, ctx: ExecutionContext | None = None) -> None:
        """Execute a statement and discard any result."""
        with self.transactions.statement(ctx) as bound:
            self._run(bound, sql)

    def query(
        self,
        sql: str,
        params: Any = None,
        bypass_cache: bool = False,
        *,
        model: type | None = None,
        ctx: ExecutionContext | None = None,
    ) -> list[Any]:
        """Run a query and return all rows.

        Rows are materialized into *model*, or into the mapped type owning the
        query's ``FROM`` table when the result carries that table's primary
        key; otherwise plain dicts are returned.
        """
        if model is not None:
            mapping: TableMapping | None = self.registry.mapping_for(model)
        else:
            mapping = self.registry.mapping_for_sql(sql)

        with self.transactions.statement(ctx) as bound:
            cursor, rows = self._run_query(bound, sql, params)
            if model is None and mapping is not None and not _carries_key(mapping, cursor):
                mapping = None
            if mapping is None:
                return rows
            use_cache = self.options.enable_cache and not bypass_cache
            return self.materializer.materialize(mapping, rows, use_cache, bound)

    def query_one(
        self,
        sql: str,
        params: Any = None,
        bypass_cache: bool = False,
        *,
        model: type | None = None,
        ctx: ExecutionContext | None = None,
    ) -> Any | None:
        """First row of :meth:`query`, or None."""
        results = self.query(sql, params, bypass_cache, model=model, ctx=ctx)
        return results[0] if results else None

    # --- object surface ---

    def get(
        self,
        model: type,
        key: Any,
        bypass_cache: bool = False,
        ctx: ExecutionContext | None = None,
    ) -> Any | None:
        """Fetch one object by primary key (a tuple for composite keys)."""
        mapping = self.registry.mapping_for(model)
        plan = self.synthesizer.build_select_by_key(mapping, key)
        return self.query_one(plan.sql, plan.as_params(), bypass_cache, model=model, ctx=ctx)

    def insert(self, obj: Any, ctx: ExecutionContext | None = None) -> Any:
        """Insert one object, or each object of a list.

        Returns the generated key (the primary key when none is generated), or
        a list of keys. Generated keys are set on the objects.
        """
        if isinstance(obj, (list, tuple)):
            keys = [self._insert_one(o, ctx) for o in obj]
            logger.info("Finished mass insert: %d objects", len(keys))
            return keys
        return self._insert_one(obj, ctx)

    def _insert_one(self, obj: Any, ctx: ExecutionContext | None) -> Any:
        mapping = self.registry.mapping_for(type(obj))
        plan = self.synthesizer.build_insert(mapping, obj)
        auto = mapping.auto_column

        with self._mutation(ctx) as bound:
            if auto is None:
                self._run_plan(bound, plan)
                key = mapping.key_of(obj)
            else:
                sql = normalize_params(plan.sql, self._paramstyle)
                params = plan.as_params()
                key = self._timed(
                    sql,
                    params,
                    lambda: self._adapter.insert_returning_key(
                        bound.connection, sql, params, auto.column_name
                    ),
                )
                if key is None:
                    raise GeneratedKeyError(sql)
                auto.set(obj, key)

            self.audit.record(AuditEvent.INSERT, mapping, bound, object_id=key, obj=obj)
            if self.options.enable_cache:
                self.cache.stage_set(bound, obj)
            return key

    def insert_batch(self, objects: Sequence[Any], ctx: ExecutionContext | None = None) -> int:
        """Insert objects of one type in a single batch.

        No generated keys are read back and no audit rows are written.
        Returns the affected row count.
        """
        if not objects:
            return 0
        model = type(objects[0])
        if any(type(o) is not model for o in objects):
            raise ValueError("insert_batch requires objects of a single type")

        mapping = self.registry.mapping_for(model)
        plans = [self.synthesizer.build_insert(mapping, o) for o in objects]
        sql = normalize_params(plans[0].sql, self._paramstyle)
        params_seq = [p.as_params() for p in plans]

        with self._mutation(ctx) as bound:
            count = self._timed(
                sql,
                f"<{len(params_seq)} rows>",
                lambda: self._adapter.execute_many(bound.connection, sql, params_seq),
            )
        logger.info("Finished batch insert into %s: %d rows", mapping.table_name, count)
        return int(count)

    def update(self, obj: Any, ctx: ExecutionContext | None = None) -> int:
        """Write the changed columns of one object, or of each object of a list.

        Returns the number of rows written; 0 when nothing changed (no
        statement is executed) or when the row no longer exists.
        """
        if isinstance(obj, (list, tuple)):
            updated = sum(self._update_one(o, ctx) for o in obj)
            logger.info("Finished mass update: %d of %d objects written", updated, len(obj))
            return updated
        return self._update_one(obj, ctx)

    def _update_one(self, obj: Any, ctx: ExecutionContext | None) -> int:
        mapping = self.registry.mapping_for(type(obj))
        plan = self.synthesizer.build_update(mapping, obj, ctx)
        if plan is None:
            logger.debug("Skipping update of %s: no changes", mapping.model_name)
            return 0

        with self._mutation(ctx) as bound:
            count = int(self._run_plan(bound, plan).rowcount)
            if count != 1:
                return 0
            for delta in plan.deltas:
                self.audit.record(
                    AuditEvent.UPDATE,
                    mapping,
                    bound,
                    obj=obj,
                    field_name=delta.field_name,
                    old_value=as_text(delta.old_value),
                    new_value=as_text(delta.new_value),
                )
            if self.options.enable_cache:
                self.cache.stage_set(bound, obj)
            return count

    def delete(self, obj: Any, ctx: ExecutionContext | None = None) -> int:
        """Delete one object by primary key. Returns 0 or 1."""
        mapping = self.registry.mapping_for(type(obj))
        plan = self.synthesizer.build_delete(mapping, obj)

        with self._mutation(ctx) as bound:
            count = int(self._run_plan(bound, plan).rowcount)
            if count != 1:
                return 0
            self.audit.record(
                AuditEvent.DELETE, mapping, bound, object_id=mapping.key_of(obj), obj=obj
            )
            self.cache.stage_unset(bound, obj)
            return count

    # --- schema ---

    def _table_name(self, target: type | TableMapping | str) -> str:
        if isinstance(target, str):
            return target
        if isinstance(target, TableMapping):
            return target.table_name
        return self.registry.mapping_for(target).table_name

    def exists_table(
        self,
        target: type | TableMapping | str,
        ctx: ExecutionContext | None = None,
    ) -> bool:
        """Whether the table of a model, mapping, or name exists."""
        table_name = self._table_name(target)
        with self.transactions.statement(ctx) as bound:
            return bool(
                self._timed(
                    table_name,
                    None,
                    lambda: self._adapter.table_exists(bound.connection, table_name),
                )
            )

    def create_table(self, model: type, ctx: ExecutionContext | None = None) -> None:
        """Create the table of a model from its column definitions."""
        mapping = self.registry.mapping_for(model)
        self.execute(self.synthesizer.build_create_table(mapping), ctx)
