"""Short-lived cache for P&L aggregates."""

import logging
import time
from typing import Callable, Generic, Hashable, Iterable, Optional, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


class AggregateCache(Generic[V]):
    """TTL cache keyed by (tenant_id, ...) and invalidated per tenant.

    Register it with Database.add_commit_listener through attach() so that
    any committed write to a tenant's rows drops that tenant's entries.
    """

    def __init__(self, ttl_seconds: float = 60, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[str, Hashable], tuple[float, V]] = {}

    def get(self, tenant_id: str, key: Hashable) -> Optional[V]:
        entry = self._entries.get((tenant_id, key))
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[(tenant_id, key)]
            return None
        return value

    def put(self, tenant_id: str, key: Hashable, value: V) -> None:
        self._entries[(tenant_id, key)] = (self._clock() + self.ttl_seconds, value)

    def invalidate_tenant(self, tenant_id: str) -> int:
        """Drop every entry of a tenant. Returns the number dropped."""
        keys = [k for k in self._entries if k[0] == tenant_id]
        for k in keys:
            del self._entries[k]
        if keys:
            logger.info("Invalidated %s cached aggregates for tenant %s", len(keys), tenant_id)
        return len(keys)

    def invalidate_tenants(self, tenant_ids: Iterable[str]) -> None:
        for tenant_id in tenant_ids:
            self.invalidate_tenant(tenant_id)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def attach(self, db) -> "AggregateCache[V]":
        """Subscribe to the database's commit notifications."""
        db.add_commit_listener(self.invalidate_tenants)
        return self
