"""Housekeeping loop - returns abandoned leases to the pool."""

import logging
import random
from typing import Optional

from leasepool.cancellation import CancellationToken
from leasepool.engine.errors import StoreUnavailable
from leasepool.engine.reservation import ReservationManager
from leasepool.observability.metrics import metrics

logger = logging.getLogger("leasepool.housekeeping")


class HousekeepingLoop:
    """
    Background loop that clears leases left behind by crashed workers.

    This is not a worker watchdog. It only releases items whose lease is
    older than the staleness threshold, leaving last_processed and
    sleep_until alone so the item is retried as if never claimed.

    Optional jitter (``jitter=0.2`` means ±20%) keeps several processes from
    sweeping in lockstep.
    """

    def __init__(
        self,
        manager: ReservationManager,
        token: CancellationToken,
        interval_seconds: float = 30,
        threshold_seconds: Optional[int] = None,
        jitter: float = 0.0,
    ):
        self.manager = manager
        self.token = token
        self.interval_seconds = interval_seconds
        self.threshold_seconds = threshold_seconds
        self.jitter = jitter
        self.sweeps = 0

    def next_interval(self) -> float:
        if not self.jitter:
            return self.interval_seconds
        return self.interval_seconds * random.uniform(1 - self.jitter, 1 + self.jitter)

    async def sweep(self) -> int:
        """Run one reclaim pass and log the count. Returns -1 if the store was unreachable."""
        try:
            count = await self.manager.reclaim_stale(self.threshold_seconds)
        except StoreUnavailable as e:
            metrics.inc_counter("store.errors")
            logger.warning(f"Stale reservation sweep skipped: {e.message}")
            return -1

        self.sweeps += 1
        logger.info(f"Released {count} stale reservations.")
        return count

    async def run(self) -> None:
        threshold = self.threshold_seconds
        if threshold is None:
            threshold = self.manager.staleness_threshold_seconds
        logger.info(
            f"Housekeeping loop started (interval: {self.interval_seconds:g}s, "
            f"threshold: {threshold}s)"
        )

        while not self.token.is_cancelled:
            await self.sweep()
            await self.token.wait(self.next_interval())

        logger.info("Housekeeping loop stopped")
