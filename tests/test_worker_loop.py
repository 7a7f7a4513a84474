"""
Worker loop tests: processing, release on every exit path, idle backoff and
transient store errors.
"""

import asyncio
import logging

import pytest

from leasepool.cancellation import CancellationSource
from leasepool.config import ReleasePolicy
from leasepool.engine.errors import StoreUnavailable
from leasepool.engine.reservation import ReservationManager
from leasepool.handlers.base import ItemHandler
from leasepool.models import UNRESERVED, ClaimCriteria, Item, Outcome
from leasepool.observability.metrics import metrics
from leasepool.store.memory import MemoryStore
from leasepool.tasks.worker import WorkerLoop, retry_backoff


class RecordingHandler(ItemHandler):
    name = "recording"

    def __init__(self, fail_on: set[str] | None = None):
        self.seen: list[str] = []
        self.fail_on = fail_on or set()

    async def process(self, item: Item) -> None:
        self.seen.append(item.id)
        if item.id in self.fail_on:
            raise RuntimeError(f"boom on {item.id}")


class FlakyStore(MemoryStore):
    """Memory store whose first claims fail as if the connection dropped."""

    def __init__(self, items, failures: int):
        super().__init__(items)
        self.failures = failures

    async def claim_next(self, criteria: ClaimCriteria) -> Item | None:
        if self.failures:
            self.failures -= 1
            raise StoreUnavailable("claim_next", "connection reset")
        return await super().claim_next(criteria)


def make_worker(store, handler, clock, policy=ReleasePolicy.REMOVE, **kwargs):
    source = CancellationSource()
    manager = ReservationManager(store, pool="queue", release_policy=policy, clock=clock)
    kwargs.setdefault("backoff_seconds", 0.01)
    worker = WorkerLoop(manager, handler, source.token, **kwargs)
    return worker, source


@pytest.mark.asyncio
async def test_worker_processes_and_removes_items(clock):
    store = MemoryStore([Item(id="a", pool="queue"), Item(id="b", pool="queue")])
    handler = RecordingHandler()
    worker, _ = make_worker(store, handler, clock, max_items=2)

    await asyncio.wait_for(worker.run(), timeout=2)

    assert sorted(handler.seen) == ["a", "b"]
    assert await store.get("a") is None
    assert await store.get("b") is None
    assert metrics.counter("items.removed") == 2


@pytest.mark.asyncio
async def test_worker_releases_item_when_handler_fails(clock):
    """A handler exception still releases the lease; the item returns to the pool."""
    store = MemoryStore([Item(id="bad", pool="queue")])
    handler = RecordingHandler(fail_on={"bad"})
    worker, _ = make_worker(store, handler, clock)

    outcome = await worker.process(await worker.manager.claim())

    assert outcome == Outcome.FAILED
    stored = await store.get("bad")
    assert stored is not None
    assert stored.reserved_at == UNRESERVED
    assert stored.sleep_until > clock.now
    assert metrics.counter("items.failed") == 1


@pytest.mark.asyncio
async def test_worker_keeps_running_after_handler_failure(clock):
    store = MemoryStore([
        Item(id="bad", pool="queue", last_processed=1),
        Item(id="good", pool="queue", last_processed=2),
    ])
    handler = RecordingHandler(fail_on={"bad"})
    worker, _ = make_worker(store, handler, clock, max_items=2)

    await asyncio.wait_for(worker.run(), timeout=2)

    assert handler.seen == ["bad", "good"]
    assert await store.get("good") is None


@pytest.mark.asyncio
async def test_worker_advance_policy_keeps_item(clock):
    store = MemoryStore([Item(id="u", pool="queue")])
    worker, _ = make_worker(store, RecordingHandler(), clock, policy=ReleasePolicy.ADVANCE)

    await worker.process(await worker.manager.claim())

    stored = await store.get("u")
    assert stored.reserved_at == UNRESERVED
    assert stored.last_processed == clock.now


@pytest.mark.asyncio
async def test_worker_backs_off_when_idle_and_stops_on_cancel(clock, caplog):
    store = MemoryStore()
    worker, source = make_worker(store, RecordingHandler(), clock, backoff_seconds=30)

    with caplog.at_level(logging.INFO, logger="leasepool.worker"):
        task = asyncio.create_task(worker.run())
        await asyncio.sleep(0.05)
        source.cancel()
        # Cancellation cuts the 30 second backoff short.
        await asyncio.wait_for(task, timeout=1)

    assert "No work to do.  Sleeping 30 second(s)." in caplog.text
    assert "Worker loop stopped" in caplog.text


@pytest.mark.asyncio
async def test_worker_survives_transient_store_errors(clock):
    store = FlakyStore([Item(id="a", pool="queue")], failures=2)
    handler = RecordingHandler()
    worker, _ = make_worker(
        store,
        handler,
        clock,
        store_retry_backoff_seconds=0.01,
        store_retry_max_backoff_seconds=0.02,
        max_items=1,
    )

    await asyncio.wait_for(worker.run(), timeout=2)

    assert handler.seen == ["a"]
    assert metrics.counter("store.errors") == 2
    assert metrics.snapshot()["gauges"]["worker.consecutive_store_errors"] == 0


@pytest.mark.asyncio
async def test_failed_release_leaves_lease_for_housekeeping(clock):
    class NoReleaseStore(MemoryStore):
        async def remove_one(self, item_id: str, expected_reserved_at=None) -> bool:
            raise StoreUnavailable("remove_one", "timeout")

    store = NoReleaseStore([Item(id="a", pool="queue")])
    worker, _ = make_worker(store, RecordingHandler(), clock)

    outcome = await worker.process(await worker.manager.claim())

    assert outcome == Outcome.SUCCEEDED
    assert (await store.get("a")).reserved_at == clock.now
    assert metrics.counter("store.errors") == 1


def test_retry_backoff_doubles_and_caps():
    assert retry_backoff(0, 1, 30) == 0.0
    assert retry_backoff(1, 1, 30) == 1
    assert retry_backoff(2, 1, 30) == 2
    assert retry_backoff(4, 1, 30) == 8
    assert retry_backoff(10, 1, 30) == 30


@pytest.mark.asyncio
async def test_max_items_counts_failed_attempts(clock):
    store = MemoryStore([Item(id=f"bad-{i}", pool="queue") for i in range(3)])
    handler = RecordingHandler(fail_on={"bad-0", "bad-1", "bad-2"})
    worker, _ = make_worker(store, handler, clock, max_items=2)

    await asyncio.wait_for(worker.run(), timeout=2)

    assert worker.processed == 2
    assert handler.seen == ["bad-0", "bad-1"]
    assert metrics.counter("items.failed") == 2
