"""SQLAlchemy table definitions."""

from typing import Any

from sqlalchemy import JSON, BigInteger, Float, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from leasepool.db.base import Base

# JSONB on PostgreSQL, plain JSON elsewhere.
PayloadType = JSON().with_variant(JSONB(), "postgresql")


class ItemTable(Base):
    """Items table - leasable work records grouped by pool."""

    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    pool: Mapped[str] = mapped_column(String(100), nullable=False)

    # Lease fields, integer epoch seconds (0 = unset)
    reserved_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    last_processed: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    sleep_until: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    payload: Mapped[dict[str, Any]] = mapped_column(PayloadType, nullable=False, default=dict)

    __table_args__ = (
        # Index for claim queries
        Index("idx_items_claimable", "pool", "sleep_until", "reserved_at", "last_processed"),
        # Index for stale lease sweeps
        Index("idx_items_reserved_at", "reserved_at"),
    )


class LocationSummaryTable(Base):
    """Location summaries table - per-station running weather totals."""

    __tablename__ = "location_summaries"

    location: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    avg_temp_total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    avg_temp_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_dewp_total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    avg_dewp_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
