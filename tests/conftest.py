"""
Pytest fixtures for LeasePool tests.
"""

import os

import pytest
import pytest_asyncio

# Keep a developer's .env or shell config from leaking into Settings().
for _name in list(os.environ):
    if _name.startswith("LEASEPOOL_"):
        del os.environ[_name]

from leasepool.engine.reservation import ReservationManager
from leasepool.observability.metrics import metrics
from leasepool.store.memory import MemoryStore
from leasepool.store.sql import SqlStore

START = 1_000_000


class FakeClock:
    """Settable epoch-seconds clock."""

    def __init__(self, now: int = START):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest_asyncio.fixture
async def sql_store(tmp_path):
    """SQLite-backed store in a throwaway file."""
    store = SqlStore.from_url(f"sqlite+aiosqlite:///{tmp_path / 'leasepool_test.db'}")
    await store.init_schema()
    yield store
    await store.close()


@pytest_asyncio.fixture(params=["memory", "sql"])
async def store(request, tmp_path):
    """Every store adapter, so lease semantics are checked against each."""
    if request.param == "memory":
        yield MemoryStore()
        return

    store = SqlStore.from_url(f"sqlite+aiosqlite:///{tmp_path / 'leasepool_param.db'}")
    await store.init_schema()
    yield store
    await store.close()


@pytest.fixture
def make_manager(store, clock):
    """Build a manager over the parametrized store with the fake clock."""

    def _make(**kwargs) -> ReservationManager:
        kwargs.setdefault("pool", "users")
        return ReservationManager(store, clock=clock, **kwargs)

    return _make
