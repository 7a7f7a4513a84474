"""SQLAlchemy-backed store adapter (PostgreSQL or SQLite)."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Iterable, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from leasepool.db.base import create_engine, create_session_factory, init_db, session_scope
from leasepool.db.repositories import ItemRepository, SummaryRepository
from leasepool.engine.errors import StoreUnavailable
from leasepool.models import ClaimCriteria, Item, LocationSummary, PoolStats, StaleCriteria
from leasepool.store.base import StoreAdapter, SummaryStore

logger = logging.getLogger("leasepool.store")


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return isinstance(exc, (asyncio.TimeoutError, ConnectionError, OSError))


@asynccontextmanager
async def _store_call(
    session_factory: async_sessionmaker[AsyncSession], operation: str
) -> AsyncGenerator[AsyncSession, None]:
    """Run one store operation in its own transaction, mapping transient errors."""
    try:
        async with session_scope(session_factory) as session:
            yield session
    except Exception as e:
        if _is_transient(e):
            raise StoreUnavailable(operation, str(e)) from e
        raise


class SqlStore(StoreAdapter):
    """
    Store adapter over the ``items`` table.

    Every method runs in its own short transaction so a claim is committed
    (and visible to other workers) before the caller starts processing.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = create_session_factory(engine)
        self._summaries = SqlSummaryStore(self.session_factory)

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "SqlStore":
        return cls(create_engine(database_url, echo=echo))

    async def init_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        try:
            await init_db(self.engine)
        except Exception as e:
            if _is_transient(e):
                raise StoreUnavailable("init_schema", str(e)) from e
            raise

    async def claim_next(self, criteria: ClaimCriteria) -> Item | None:
        async with _store_call(self.session_factory, "claim_next") as session:
            return await ItemRepository(session).claim_next(criteria)

    async def bulk_release_stale(self, criteria: StaleCriteria) -> int:
        async with _store_call(self.session_factory, "bulk_release_stale") as session:
            return await ItemRepository(session).release_stale(criteria)

    async def update_one(
        self,
        item_id: str,
        fields: dict[str, Any],
        expected_reserved_at: Optional[int] = None,
    ) -> bool:
        async with _store_call(self.session_factory, "update_one") as session:
            return await ItemRepository(session).update(item_id, fields, expected_reserved_at)

    async def remove_one(self, item_id: str, expected_reserved_at: Optional[int] = None) -> bool:
        async with _store_call(self.session_factory, "remove_one") as session:
            return await ItemRepository(session).delete(item_id, expected_reserved_at)

    async def insert_many(self, items: Iterable[Item]) -> int:
        async with _store_call(self.session_factory, "insert_many") as session:
            return await ItemRepository(session).insert_many(items)

    async def clear_pool(self, pool: str) -> int:
        async with _store_call(self.session_factory, "clear_pool") as session:
            return await ItemRepository(session).delete_pool(pool)

    async def get(self, item_id: str) -> Item | None:
        async with _store_call(self.session_factory, "get") as session:
            return await ItemRepository(session).get(item_id)

    async def pool_stats(self, pool: str, now: int) -> PoolStats:
        async with _store_call(self.session_factory, "pool_stats") as session:
            return await ItemRepository(session).stats(pool, now)

    def summaries(self) -> "SqlSummaryStore":
        return self._summaries

    async def ping(self) -> None:
        async with _store_call(self.session_factory, "ping") as session:
            await session.execute(text("SELECT 1"))

    async def close(self) -> None:
        """Close database connections."""
        await self.engine.dispose()


class SqlSummaryStore(SummaryStore):
    """Summary store over the ``location_summaries`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def increment(self, location: int, temp: float, dewp: float) -> None:
        async with _store_call(self.session_factory, "summary_increment") as session:
            await SummaryRepository(session).increment(location, temp, dewp)

    async def get(self, location: int) -> LocationSummary | None:
        async with _store_call(self.session_factory, "summary_get") as session:
            return await SummaryRepository(session).get(location)
