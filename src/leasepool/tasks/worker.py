"""Worker loop - claim, process, release."""

import logging
import time
from typing import Optional

from leasepool.cancellation import CancellationToken
from leasepool.engine.errors import StoreUnavailable
from leasepool.engine.reservation import ReservationManager
from leasepool.handlers.base import ItemHandler
from leasepool.models import Item, Outcome
from leasepool.observability.metrics import metrics

logger = logging.getLogger("leasepool.worker")


def retry_backoff(failures: int, base_seconds: float, max_seconds: float) -> float:
    """Backoff after ``failures`` consecutive store errors: base * 2^(n-1), capped."""
    if failures <= 0:
        return 0.0
    return min(base_seconds * (2 ** (failures - 1)), max_seconds)


class WorkerLoop:
    """
    Repeatedly leases an item, runs the handler on it and releases it.

    Idle: claim. Nothing eligible -> wait ``backoff_seconds`` and try again.
    Claimed: process, then release on every exit path, success or not.

    Cancellation is checked before each claim and during every wait. An item
    already being processed always runs to completion and is released.

    ``max_items`` bounds attempts: a failed item counts the same as a
    successful one.
    """

    def __init__(
        self,
        manager: ReservationManager,
        handler: ItemHandler,
        token: CancellationToken,
        backoff_seconds: float = 1,
        store_retry_backoff_seconds: float = 1,
        store_retry_max_backoff_seconds: float = 30,
        max_items: Optional[int] = None,
    ):
        self.manager = manager
        self.handler = handler
        self.token = token
        self.backoff_seconds = backoff_seconds
        self.store_retry_backoff_seconds = store_retry_backoff_seconds
        self.store_retry_max_backoff_seconds = store_retry_max_backoff_seconds
        self.max_items = max_items
        self.processed = 0
        self._store_failures = 0

    async def run(self) -> None:
        logger.info(
            f"Worker loop started (pool: {self.manager.pool}, handler: {self.handler.name}, "
            f"policy: {self.manager.release_policy.value})"
        )

        while not self.token.is_cancelled:
            if self.max_items is not None and self.processed >= self.max_items:
                logger.info(f"Handled {self.processed} items, worker loop finishing")
                break

            try:
                item = await self.manager.claim()
            except StoreUnavailable as e:
                await self._store_error(e)
                continue
            self._store_ok()

            if item is None:
                logger.info(f"No work to do.  Sleeping {self.backoff_seconds:g} second(s).")
                await self.token.wait(self.backoff_seconds)
                continue

            await self.process(item)

        logger.info("Worker loop stopped")

    async def process(self, item: Item) -> Outcome:
        """Run the handler on a leased item and release it, whatever happens."""
        start_time = time.perf_counter()
        outcome = Outcome.FAILED
        try:
            await self.handler.process(item)
            outcome = Outcome.SUCCEEDED
        except Exception as e:
            logger.error(f"Failed processing item {item.id}: {e}", exc_info=True)
        finally:
            duration = time.perf_counter() - start_time
            metrics.observe("item.duration_ms", duration * 1000.0)
            await self._release(item, outcome)

        self.processed += 1
        if outcome == Outcome.SUCCEEDED:
            logger.info(
                f"Processed => {self.handler.describe(item)} ({round(duration, 4)} seconds)"
            )
        return outcome

    async def _release(self, item: Item, outcome: Outcome) -> None:
        try:
            await self.manager.release(item, outcome)
        except StoreUnavailable as e:
            # The lease stays set; housekeeping returns the item once it is stale.
            metrics.inc_counter("store.errors")
            logger.warning(f"Could not release item {item.id}, leaving it to housekeeping: {e}")

    async def _store_error(self, error: StoreUnavailable) -> None:
        self._store_failures += 1
        metrics.inc_counter("store.errors")
        metrics.set_gauge("worker.consecutive_store_errors", self._store_failures)
        delay = retry_backoff(
            self._store_failures,
            self.store_retry_backoff_seconds,
            self.store_retry_max_backoff_seconds,
        )
        logger.warning(f"{error.message}; retrying in {delay:g}s")
        await self.token.wait(delay)

    def _store_ok(self) -> None:
        if self._store_failures:
            logger.info(f"Store reachable again after {self._store_failures} failed attempts")
            self._store_failures = 0
            metrics.set_gauge("worker.consecutive_store_errors", 0)
