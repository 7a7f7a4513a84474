"""Reservation manager - claim, release and stale lease reclaim."""

import logging
from typing import Callable, Optional

from leasepool.config import ReleasePolicy, Settings
from leasepool.models import UNRESERVED, ClaimCriteria, Item, Outcome, StaleCriteria
from leasepool.observability.metrics import metrics
from leasepool.store.base import StoreAdapter
from leasepool.utils.time import epoch_now

logger = logging.getLogger("leasepool.reservation")


class ReservationManager:
    """
    Lease protocol over one pool of a shared store.

    This is the only component that writes reserved_at, last_processed and
    sleep_until. Atomicity comes entirely from the store's conditional
    update; no in-process lock is held, so any number of managers in any
    number of processes can share a pool.

    Release policy:
    - REMOVE: a processed item leaves the pool (single-shot queue).
    - ADVANCE: a processed item stays, with last_processed = now and
      sleep_until = now + release_cooldown (recurring pool).

    A FAILED outcome never removes the item. It goes back to the pool with
    sleep_until = now + failure_cooldown and last_processed untouched.
    """

    def __init__(
        self,
        store: StoreAdapter,
        pool: str,
        release_policy: ReleasePolicy = ReleasePolicy.REMOVE,
        staleness_threshold_seconds: int = 30,
        release_cooldown_seconds: int = 5,
        failure_cooldown_seconds: int = 5,
        clock: Callable[[], int] = epoch_now,
    ):
        self.store = store
        self.pool = pool
        self.release_policy = release_policy
        self.staleness_threshold_seconds = staleness_threshold_seconds
        self.release_cooldown_seconds = release_cooldown_seconds
        self.failure_cooldown_seconds = failure_cooldown_seconds
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        store: StoreAdapter,
        settings: Settings,
        clock: Callable[[], int] = epoch_now,
    ) -> "ReservationManager":
        return cls(
            store,
            pool=settings.pool,
            release_policy=settings.release_policy,
            staleness_threshold_seconds=settings.staleness_threshold_seconds,
            release_cooldown_seconds=settings.release_cooldown_seconds,
            failure_cooldown_seconds=settings.failure_cooldown_seconds,
            clock=clock,
        )

    async def claim(self) -> Item | None:
        """
        Lease the least-recently-processed eligible item.

        Eligible means reserved_at = 0 and sleep_until < now. The returned
        item carries reserved_at = now. None means nothing is eligible right
        now, which is not an error.
        """
        item = await self.store.claim_next(ClaimCriteria(pool=self.pool, now=self.clock()))
        if item is not None:
            metrics.inc_counter("items.claimed")
        return item

    async def release(self, item: Item, outcome: Outcome = Outcome.SUCCEEDED) -> None:
        """
        Give up the lease on an item according to the release policy.

        The write is conditioned on the lease stamp returned by claim(). If
        the lease was reclaimed as stale and the item claimed again, the
        late release leaves the new lease untouched.
        """
        now = self.clock()
        lease = item.reserved_at

        if outcome == Outcome.FAILED:
            fields = {
                "reserved_at": UNRESERVED,
                "sleep_until": now + self.failure_cooldown_seconds,
            }
            found = await self.store.update_one(item.id, fields, expected_reserved_at=lease)
            counter = "items.failed"
        elif self.release_policy == ReleasePolicy.REMOVE:
            found = await self.store.remove_one(item.id, expected_reserved_at=lease)
            counter = "items.removed"
        else:
            fields = {
                "reserved_at": UNRESERVED,
                "last_processed": now,
                "sleep_until": now + self.release_cooldown_seconds,
            }
            found = await self.store.update_one(item.id, fields, expected_reserved_at=lease)
            counter = "items.released"

        if found:
            metrics.inc_counter(counter)
        else:
            # Reclaimed and re-leased elsewhere, or removed. The current holder
            # owns the item now, so nothing is written.
            metrics.inc_counter("leases.lost")
            logger.warning(
                f"Lease on item {item.id} (taken at {lease}) was lost "
                f"before release in pool {self.pool}"
            )

    async def reclaim_stale(self, threshold_seconds: Optional[int] = None) -> int:
        """
        Return abandoned leases to the pool.

        Clears reserved_at on items whose lease was taken more than
        ``threshold_seconds`` ago (0 < reserved_at < now - threshold).
        last_processed and sleep_until are left unchanged. Returns the number
        of items released.
        """
        threshold = (
            self.staleness_threshold_seconds if threshold_seconds is None else threshold_seconds
        )
        cutoff = self.clock() - threshold
        count = await self.store.bulk_release_stale(StaleCriteria(pool=self.pool, cutoff=cutoff))
        if count:
            metrics.inc_counter("leases.reclaimed", count)
        return count
