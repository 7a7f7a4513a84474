"""Database repositories for LeasePool entities."""

from typing import Any, Iterable, Optional

from sqlalchemy import case, delete, func, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from leasepool.db.tables import ItemTable, LocationSummaryTable
from leasepool.models import (
    UNRESERVED,
    ClaimCriteria,
    Item,
    LocationSummary,
    PoolStats,
    StaleCriteria,
)

# Columns a caller may set through update(); everything else is identity.
_MUTABLE_FIELDS = {"reserved_at", "last_processed", "sleep_until", "payload"}


class ItemRepository:
    """Repository for item and lease operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def claim_next(self, criteria: ClaimCriteria) -> Item | None:
        """
        Atomically lease the least-recently-processed eligible item.

        One UPDATE statement selects the candidate and stamps reserved_at.
        On PostgreSQL the candidate row is locked with SKIP LOCKED so
        concurrent claimers move on to the next row instead of blocking; the
        outer reserved_at guard is re-evaluated after the lock is taken.
        SQLite serializes writers, so the statement is atomic there as well.
        """
        # Aliased so the subquery is not correlated to the UPDATE target.
        pick = aliased(ItemTable, name="candidate")
        candidate = (
            select(pick.id)
            .where(
                pick.pool == criteria.pool,
                pick.reserved_at == UNRESERVED,
                pick.sleep_until < criteria.now,
            )
            .order_by(pick.last_processed.asc(), pick.id.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(ItemTable)
            .where(ItemTable.id == candidate, ItemTable.reserved_at == UNRESERVED)
            .values(reserved_at=criteria.now)
            .returning(*ItemTable.__table__.columns)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        row = result.mappings().one_or_none()
        return self._row_to_model(row) if row else None

    async def release_stale(self, criteria: StaleCriteria) -> int:
        """Clear every lease in the pool taken before the cutoff."""
        result = await self.session.execute(
            update(ItemTable)
            .where(
                ItemTable.pool == criteria.pool,
                ItemTable.reserved_at > UNRESERVED,
                ItemTable.reserved_at < criteria.cutoff,
            )
            .values(reserved_at=UNRESERVED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def update(
        self,
        item_id: str,
        fields: dict[str, Any],
        expected_reserved_at: Optional[int] = None,
    ) -> bool:
        """
        Set fields on one item.

        When ``expected_reserved_at`` is given, the row must still hold that
        lease stamp. Returns False if no row matched.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update item fields: {sorted(unknown)}")
        if not fields:
            current = await self.get(item_id)
            return current is not None and (
                expected_reserved_at is None or current.reserved_at == expected_reserved_at
            )

        result = await self.session.execute(
            update(ItemTable)
            .where(*self._lease_filter(item_id, expected_reserved_at))
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def delete(self, item_id: str, expected_reserved_at: Optional[int] = None) -> bool:
        result = await self.session.execute(
            delete(ItemTable).where(*self._lease_filter(item_id, expected_reserved_at))
        )
        return result.rowcount > 0

    def _lease_filter(self, item_id: str, expected_reserved_at: Optional[int]) -> list:
        clauses = [ItemTable.id == item_id]
        if expected_reserved_at is not None:
            clauses.append(ItemTable.reserved_at == expected_reserved_at)
        return clauses

    async def insert_many(self, items: Iterable[Item]) -> int:
        rows = [
            {
                "id": item.id,
                "pool": item.pool,
                "reserved_at": item.reserved_at,
                "last_processed": item.last_processed,
                "sleep_until": item.sleep_until,
                "payload": item.payload,
            }
            for item in items
        ]
        if not rows:
            return 0
        await self.session.execute(insert(ItemTable), rows)
        return len(rows)

    async def delete_pool(self, pool: str) -> int:
        result = await self.session.execute(delete(ItemTable).where(ItemTable.pool == pool))
        return result.rowcount

    async def get(self, item_id: str) -> Item | None:
        result = await self.session.execute(
            select(ItemTable).where(ItemTable.id == item_id)
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def stats(self, pool: str, now: int) -> PoolStats:
        """Count items in the pool by lease state."""
        unreserved = ItemTable.reserved_at == UNRESERVED
        result = await self.session.execute(
            select(
                func.count(),
                func.sum(case((~unreserved, 1), else_=0)),
                func.sum(case((unreserved & (ItemTable.sleep_until >= now), 1), else_=0)),
                func.sum(case((unreserved & (ItemTable.sleep_until < now), 1), else_=0)),
            ).where(ItemTable.pool == pool)
        )
        total, reserved, sleeping, eligible = result.one()
        return PoolStats(
            pool=pool,
            total=total or 0,
            reserved=reserved or 0,
            sleeping=sleeping or 0,
            eligible=eligible or 0,
        )

    def _row_to_model(self, row: Any) -> Item:
        """Convert a table row (ORM object or RETURNING mapping) to a model."""
        if isinstance(row, ItemTable):
            row = {
                column.key: getattr(row, column.key)
                for column in ItemTable.__table__.columns
            }
        return Item(
            id=row["id"],
            pool=row["pool"],
            reserved_at=row["reserved_at"],
            last_processed=row["last_processed"],
            sleep_until=row["sleep_until"],
            payload=row["payload"] or {},
        )


class SummaryRepository:
    """Repository for per-location weather summaries."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def increment(self, location: int, temp: float, dewp: float) -> None:
        """Add one observation to a location's totals, creating the row if needed."""
        dialect = self.session.get_bind().dialect.name
        dialect_insert = pg_insert if dialect == "postgresql" else sqlite_insert

        stmt = dialect_insert(LocationSummaryTable).values(
            location=location,
            avg_temp_total=temp,
            avg_temp_count=1,
            avg_dewp_total=dewp,
            avg_dewp_count=1,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[LocationSummaryTable.location],
            set_={
                "avg_temp_total": LocationSummaryTable.avg_temp_total + stmt.excluded.avg_temp_total,
                "avg_temp_count": LocationSummaryTable.avg_temp_count + 1,
                "avg_dewp_total": LocationSummaryTable.avg_dewp_total + stmt.excluded.avg_dewp_total,
                "avg_dewp_count": LocationSummaryTable.avg_dewp_count + 1,
            },
        )
        await self.session.execute(stmt)

    async def get(self, location: int) -> LocationSummary | None:
        result = await self.session.execute(
            select(LocationSummaryTable).where(LocationSummaryTable.location == location)
        )
        row = result.scalar_one_or_none()
        if not row:
            return None
        return LocationSummary(
            location=row.location,
            avg_temp_total=row.avg_temp_total,
            avg_temp_count=row.avg_temp_count,
            avg_dewp_total=row.avg_dewp_total,
            avg_dewp_count=row.avg_dewp_count,
        )
