"""
Housekeeping loop and cancellation token tests.
"""

import asyncio
import logging

import pytest

from leasepool.cancellation import CancellationSource
from leasepool.engine.errors import StoreUnavailable
from leasepool.engine.reservation import ReservationManager
from leasepool.models import UNRESERVED, Item, StaleCriteria
from leasepool.observability.metrics import metrics
from leasepool.store.memory import MemoryStore
from leasepool.tasks.housekeeping import HousekeepingLoop


@pytest.mark.asyncio
async def test_sweep_reclaims_and_logs_count(clock, caplog):
    store = MemoryStore([
        Item(id="stale", pool="users", reserved_at=clock.now - 60),
        Item(id="live", pool="users", reserved_at=clock.now - 5),
    ])
    manager = ReservationManager(store, pool="users", clock=clock)
    loop = HousekeepingLoop(manager, CancellationSource().token, threshold_seconds=30)

    with caplog.at_level(logging.INFO, logger="leasepool.housekeeping"):
        count = await loop.sweep()

    assert count == 1
    assert "Released 1 stale reservations." in caplog.text
    assert (await store.get("stale")).reserved_at == UNRESERVED
    assert (await store.get("live")).reserved_at == clock.now - 5
    assert metrics.counter("leases.reclaimed") == 1


@pytest.mark.asyncio
async def test_sweep_survives_store_outage(clock):
    class DownStore(MemoryStore):
        async def bulk_release_stale(self, criteria: StaleCriteria) -> int:
            raise StoreUnavailable("bulk_release_stale", "connection refused")

    manager = ReservationManager(DownStore(), pool="users", clock=clock)
    loop = HousekeepingLoop(manager, CancellationSource().token)

    assert await loop.sweep() == -1
    assert loop.sweeps == 0
    assert metrics.counter("store.errors") == 1


@pytest.mark.asyncio
async def test_housekeeping_exits_promptly_on_cancel(clock):
    """Cancellation interrupts the 30 second interval instead of waiting it out."""
    manager = ReservationManager(MemoryStore(), pool="users", clock=clock)
    source = CancellationSource()
    loop = HousekeepingLoop(manager, source.token, interval_seconds=30)

    task = asyncio.create_task(loop.run())
    await asyncio.sleep(0.05)
    assert loop.sweeps == 1

    source.cancel()
    await asyncio.wait_for(task, timeout=1)


@pytest.mark.asyncio
async def test_housekeeping_repeats_on_interval(clock):
    manager = ReservationManager(MemoryStore(), pool="users", clock=clock)
    source = CancellationSource()
    loop = HousekeepingLoop(manager, source.token, interval_seconds=0.01)

    task = asyncio.create_task(loop.run())
    await asyncio.sleep(0.2)
    source.cancel()
    await asyncio.wait_for(task, timeout=1)

    assert loop.sweeps >= 3


def test_jittered_interval_stays_in_range(clock):
    manager = ReservationManager(MemoryStore(), pool="users", clock=clock)
    loop = HousekeepingLoop(manager, CancellationSource().token, interval_seconds=10, jitter=0.2)

    intervals = [loop.next_interval() for _ in range(200)]

    assert all(8 <= interval <= 12 for interval in intervals)
    assert HousekeepingLoop(manager, CancellationSource().token).next_interval() == 30


def test_cancel_is_idempotent():
    source = CancellationSource()

    assert source.token.is_cancelled is False
    assert source.cancel() is True
    assert source.cancel() is False
    assert source.token.is_cancelled is True


@pytest.mark.asyncio
async def test_token_wait_times_out_without_cancel():
    source = CancellationSource()

    assert await source.token.wait(0.01) is False
    assert await source.token.wait(0) is False


@pytest.mark.asyncio
async def test_token_wait_returns_early_on_cancel():
    source = CancellationSource()
    asyncio.get_running_loop().call_later(0.02, source.cancel)

    cancelled = await asyncio.wait_for(source.token.wait(60), timeout=1)

    assert cancelled is True
    # Already cancelled: returns immediately.
    assert await source.token.wait(60) is True
