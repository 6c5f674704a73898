"""Process-wide object cache keyed by (type, primary key).

Entries are shallow snapshots of the last row fetched from or written to the
database. There is no eviction: an entry lives until it is unset or the
cache is cleared. Writes made through a transactional context are staged on
the context and only reach the cache when the transaction commits.
"""

from __future__ import annotations

import copy
import threading
from typing import TYPE_CHECKING, Any

from row_orm.mapping.schema import SchemaRegistry, default_registry

if TYPE_CHECKING:
    from row_orm.core.context import ExecutionContext

CacheKey = tuple[type, Any]


class ObjectCache:
    """Thread-safe map of ``(type, primary key)`` to the last known object."""

    def __init__(self, registry: SchemaRegistry | None = None) -> None:
        self._registry = registry if registry is not None else default_registry
        self._entries: dict[CacheKey, Any] = {}
        self._lock = threading.Lock()

    def key_for(self, obj: Any) -> CacheKey:
        mapping = self._registry.mapping_for(type(obj))
        return (mapping.model, mapping.key_of(obj))

    def get(self, model: type, key: Any) -> Any | None:
        with self._lock:
            return self._entries.get((model, key))

    def set(self, obj: Any) -> None:
        """Overwrite the entry for *obj* with a snapshot of its state."""
        self.put(self.key_for(obj), copy.copy(obj))

    def unset(self, obj: Any) -> None:
        self.discard(self.key_for(obj))

    def put(self, key: CacheKey, snapshot: Any) -> None:
        with self._lock:
            self._entries[key] = snapshot

    def discard(self, key: CacheKey) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    # --- context-aware access ---

    def lookup(self, ctx: ExecutionContext | None, model: type, key: Any) -> Any | None:
        """Snapshot visible to *ctx*: its staged writes first, then the cache."""
        if ctx is not None:
            hit, snapshot = ctx.staged(self, (model, key))
            if hit:
                return snapshot
        return self.get(model, key)

    def stage_set(self, ctx: ExecutionContext | None, obj: Any) -> None:
        if ctx is not None and ctx.in_transaction:
            ctx.stage(self, self.key_for(obj), copy.copy(obj))
        else:
            self.set(obj)

    def stage_unset(self, ctx: ExecutionContext | None, obj: Any) -> None:
        if ctx is not None and ctx.in_transaction:
            ctx.stage_removal(self, self.key_for(obj))
        else:
            self.unset(obj)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


default_cache = ObjectCache()
