"""LeasePool store adapters."""

from leasepool.store.base import StoreAdapter, SummaryStore
from leasepool.store.memory import MemoryStore, MemorySummaryStore
from leasepool.store.sql import SqlStore, SqlSummaryStore

__all__ = [
    "MemoryStore",
    "MemorySummaryStore",
    "SqlStore",
    "SqlSummaryStore",
    "StoreAdapter",
    "SummaryStore",
]
