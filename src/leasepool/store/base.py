"""Store adapter interface consumed by the reservation manager."""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from leasepool.models import ClaimCriteria, Item, LocationSummary, PoolStats, StaleCriteria


class StoreAdapter(ABC):
    """Abstract base class for shared item stores.

    ``claim_next`` and ``bulk_release_stale`` must each be a single indivisible
    operation on the shared store. They are the only synchronization point
    between workers, including workers in other processes.

    Implementations raise ``StoreUnavailable`` for transient failures and let
    every other error propagate.
    """

    @abstractmethod
    async def claim_next(self, criteria: ClaimCriteria) -> Item | None:
        """
        Atomically lease one eligible item.

        Finds the least-recently-processed item matching the criteria, sets
        its reserved_at to ``criteria.now`` and returns the leased record.
        Returns None when nothing is eligible.
        """
        pass

    @abstractmethod
    async def bulk_release_stale(self, criteria: StaleCriteria) -> int:
        """Atomically clear every lease older than the cutoff; return how many."""
        pass

    @abstractmethod
    async def update_one(
        self,
        item_id: str,
        fields: dict[str, Any],
        expected_reserved_at: Optional[int] = None,
    ) -> bool:
        """
        Set fields on one item.

        With ``expected_reserved_at`` the write only applies while the item
        still carries that lease stamp. Returns False if no item matched.
        """
        pass

    @abstractmethod
    async def remove_one(self, item_id: str, expected_reserved_at: Optional[int] = None) -> bool:
        """Delete one item, optionally only while it holds the given lease. False if none matched."""
        pass

    @abstractmethod
    async def insert_many(self, items: Iterable[Item]) -> int:
        pass

    @abstractmethod
    async def clear_pool(self, pool: str) -> int:
        pass

    @abstractmethod
    async def get(self, item_id: str) -> Item | None:
        pass

    @abstractmethod
    async def pool_stats(self, pool: str, now: int) -> PoolStats:
        pass

    @abstractmethod
    def summaries(self) -> "SummaryStore":
        """Return the summary store that shares this adapter's backend."""
        pass

    async def ping(self) -> None:
        """Verify the store is reachable; raise StoreUnavailable if not."""
        return None

    async def close(self) -> None:
        return None


class SummaryStore(ABC):
    """Destination for per-location aggregates produced by the summarize handler."""

    @abstractmethod
    async def increment(self, location: int, temp: float, dewp: float) -> None:
        pass

    @abstractmethod
    async def get(self, location: int) -> LocationSummary | None:
        pass
