"""In-process store adapter."""

import copy
from typing import Any, Iterable, Optional

from leasepool.models import (
    UNRESERVED,
    ClaimCriteria,
    Item,
    LocationSummary,
    PoolStats,
    StaleCriteria,
)
from leasepool.store.base import StoreAdapter, SummaryStore

_MUTABLE_FIELDS = {"reserved_at", "last_processed", "sleep_until", "payload"}


class MemoryStore(StoreAdapter):
    """
    Dict-backed store for tests and single-process dry runs.

    None of the methods await between reading and writing, so each call runs
    to completion on the event loop without interleaving with another
    coroutine. That is what makes claim_next atomic here; the store is not
    shared across processes or threads.
    """

    def __init__(self, items: Iterable[Item] = ()):
        self._items: dict[str, Item] = {}
        self._summaries = MemorySummaryStore()
        for item in items:
            self._items[item.id] = item.model_copy(deep=True)

    async def claim_next(self, criteria: ClaimCriteria) -> Item | None:
        eligible = [
            item
            for item in self._items.values()
            if item.pool == criteria.pool and item.is_eligible(criteria.now)
        ]
        if not eligible:
            return None

        item = min(eligible, key=lambda candidate: (candidate.last_processed, candidate.id))
        item.reserved_at = criteria.now
        return item.model_copy(deep=True)

    async def bulk_release_stale(self, criteria: StaleCriteria) -> int:
        count = 0
        for item in self._items.values():
            if item.pool == criteria.pool and item.is_stale(criteria.cutoff):
                item.reserved_at = UNRESERVED
                count += 1
        return count

    async def update_one(
        self,
        item_id: str,
        fields: dict[str, Any],
        expected_reserved_at: Optional[int] = None,
    ) -> bool:
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update item fields: {sorted(unknown)}")

        item = self._leased(item_id, expected_reserved_at)
        if item is None:
            return False
        for name, value in fields.items():
            # Stored state must not alias the caller's objects.
            setattr(item, name, copy.deepcopy(value))
        return True

    async def remove_one(self, item_id: str, expected_reserved_at: Optional[int] = None) -> bool:
        if self._leased(item_id, expected_reserved_at) is None:
            return False
        del self._items[item_id]
        return True

    def _leased(self, item_id: str, expected_reserved_at: Optional[int]) -> Item | None:
        item = self._items.get(item_id)
        if item is None:
            return None
        if expected_reserved_at is not None and item.reserved_at != expected_reserved_at:
            return None
        return item

    async def insert_many(self, items: Iterable[Item]) -> int:
        count = 0
        for item in items:
            if item.id in self._items:
                raise ValueError(f"Duplicate item id: {item.id}")
            self._items[item.id] = item.model_copy(deep=True)
            count += 1
        return count

    async def clear_pool(self, pool: str) -> int:
        doomed = [item_id for item_id, item in self._items.items() if item.pool == pool]
        for item_id in doomed:
            del self._items[item_id]
        return len(doomed)

    async def get(self, item_id: str) -> Item | None:
        item = self._items.get(item_id)
        return item.model_copy(deep=True) if item else None

    async def pool_stats(self, pool: str, now: int) -> PoolStats:
        stats = PoolStats(pool=pool)
        for item in self._items.values():
            if item.pool != pool:
                continue
            stats.total += 1
            if item.is_reserved:
                stats.reserved += 1
            elif item.is_eligible(now):
                stats.eligible += 1
            else:
                stats.sleeping += 1
        return stats

    def summaries(self) -> "MemorySummaryStore":
        return self._summaries


class MemorySummaryStore(SummaryStore):
    def __init__(self):
        self._rows: dict[int, LocationSummary] = {}

    async def increment(self, location: int, temp: float, dewp: float) -> None:
        row = self._rows.setdefault(location, LocationSummary(location=location))
        row.avg_temp_total += temp
        row.avg_temp_count += 1
        row.avg_dewp_total += dewp
        row.avg_dewp_count += 1

    async def get(self, location: int) -> LocationSummary | None:
        row = self._rows.get(location)
        return row.model_copy() if row else None
