"""Connection configuration and pooling.

ConnectionConfig is a Pydantic model for type-safe connection config.
ConnectionManager keeps a thread-safe pool of adapter connections, created
lazily up to ``pool_size``. Idle connections older than ``pool_recycle``
seconds are closed and replaced on the next acquire.
"""

from __future__ import annotations

import importlib
import logging
import queue
import threading
import time
from typing import Any

from pydantic import BaseModel

from row_orm.core.enums import DatabaseBackend
from row_orm.core.exceptions import AdapterError, ConnectionAcquisitionFailure, PoolError

logger = logging.getLogger(__name__)


class ConnectionConfig(BaseModel):
    """Configuration for database connections."""

    driver: str
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str
    pool_size: int = 5
    pool_timeout: int = 30
    pool_recycle: int = 1800
    extra: dict[str, Any] = {}


# Adapter module mapping: backend → (module_path, class_name)
_ADAPTER_MAP: dict[DatabaseBackend, tuple[str, str]] = {
    DatabaseBackend.SQLITE: ("row_orm.adapters.sqlite", "SqliteAdapter"),
    DatabaseBackend.POSTGRESQL: ("row_orm.adapters.postgresql", "PostgresqlAdapter"),
    DatabaseBackend.MYSQL: ("row_orm.adapters.mysql", "MysqlAdapter"),
    DatabaseBackend.ORACLE: ("row_orm.adapters.oracle", "OracleAdapter"),
}


def _load_adapter(driver: str) -> Any:
    """Load an adapter by driver name."""
    try:
        backend = DatabaseBackend(driver.lower())
    except ValueError:
        raise AdapterError(f"Unsupported database driver: {driver}") from None

    module_path, cls_name = _ADAPTER_MAP[backend]
    try:
        module = importlib.import_module(module_path)
        return getattr(module, cls_name)()
    except (ImportError, AttributeError) as e:
        raise AdapterError(f"Failed to load adapter for '{driver}': {e}") from e


class ConnectionManager:
    """Pooled connection source backed by a SyncAdapter."""

    def __init__(self, config: ConnectionConfig, adapter: Any | None = None) -> None:
        self.config = config
        self._adapter = adapter if adapter is not None else _load_adapter(config.driver)
        self._idle: queue.LifoQueue[Any] = queue.LifoQueue()
        self._created = 0
        self._opened: dict[int, float] = {}
        self._lock = threading.Lock()
        self._closed = False

    @property
    def adapter(self) -> Any:
        return self._adapter

    def _try_create(self) -> Any | None:
        with self._lock:
            if self._created >= self.config.pool_size:
                return None
            self._created += 1
        try:
            connection = self._adapter.connect(self.config)
        except Exception as e:
            with self._lock:
                self._created -= 1
            raise ConnectionAcquisitionFailure(
                f"Cannot connect to {self.config.driver}: {e}"
            ) from e
        self._opened[id(connection)] = time.monotonic()
        logger.debug("Opened connection %d/%d", self._created, self.config.pool_size)
        return connection

    def acquire(self) -> Any:
        """Take a connection from the pool, blocking up to ``pool_timeout``.

        Raises:
            ConnectionAcquisitionFailure: If no connection became available.
        """
        if self._closed:
            raise PoolError("Connection pool is closed")
        deadline = time.monotonic() + self.config.pool_timeout
        while True:
            try:
                connection = self._idle.get_nowait()
            except queue.Empty:
                connection = self._try_create()
                if connection is None:
                    connection = self._wait_idle(deadline)
            if not self._expired(connection):
                return connection
            logger.debug("Recycling connection older than %ds", self.config.pool_recycle)
            self.discard(connection)

    def _wait_idle(self, deadline: float) -> Any:
        try:
            return self._idle.get(timeout=max(deadline - time.monotonic(), 0))
        except queue.Empty:
            raise ConnectionAcquisitionFailure(
                f"No connection available after {self.config.pool_timeout}s "
                f"(pool_size={self.config.pool_size})"
            ) from None

    def _expired(self, connection: Any) -> bool:
        recycle = self.config.pool_recycle
        if recycle <= 0:
            return False
        opened = self._opened.get(id(connection))
        return opened is not None and time.monotonic() - opened >= recycle

    def release(self, connection: Any) -> None:
        """Return a connection to the pool."""
        if self._closed:
            self.discard(connection)
            return
        self._idle.put(connection)

    def discard(self, connection: Any) -> None:
        """Close a connection that cannot be reused and free its pool slot."""
        with self._lock:
            self._created -= 1
            self._opened.pop(id(connection), None)
        try:
            self._adapter.close(connection)
        except Exception:
            logger.warning("Failed to close discarded connection", exc_info=True)

    def pool_info(self) -> dict[str, int]:
        """Pool occupancy: configured size, connections opened, idle, in use."""
        idle = self._idle.qsize()
        return {
            "size": self.config.pool_size,
            "open": self._created,
            "idle": idle,
            "in_use": self._created - idle,
        }

    def close_pool(self) -> None:
        """Close every idle connection; in-use ones close when released."""
        self._closed = True
        while True:
            try:
                connection = self._idle.get_nowait()
            except queue.Empty:
                break
            self._adapter.close(connection)
            with self._lock:
                self._created -= 1
                self._opened.pop(id(connection), None)
