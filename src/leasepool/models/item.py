"""Item model - unit of work held in a pool."""

from typing import Any

from pydantic import BaseModel, Field

UNRESERVED = 0


class Item(BaseModel):
    """A record in a pool, carrying its lease fields and an opaque payload."""

    id: str
    pool: str

    # Lease fields (integer epoch seconds, 0 = unset)
    reserved_at: int = UNRESERVED
    last_processed: int = 0
    sleep_until: int = 0

    # Domain fields, never interpreted by the reservation layer
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_reserved(self) -> bool:
        return self.reserved_at != UNRESERVED

    def is_eligible(self, now: int) -> bool:
        """Check if the item may be claimed at ``now``."""
        return not self.is_reserved and self.sleep_until < now

    def is_stale(self, cutoff: int) -> bool:
        """Check if the item holds a lease taken before ``cutoff``."""
        return UNRESERVED < self.reserved_at < cutoff


class ClaimCriteria(BaseModel):
    """Eligibility predicate and sort key for an atomic claim.

    Matches ``pool = pool AND reserved_at = 0 AND sleep_until < now``,
    least-recently-processed first, and stamps ``reserved_at = now``.
    """

    pool: str
    now: int


class StaleCriteria(BaseModel):
    """Predicate for bulk staleness release: ``0 < reserved_at < cutoff``."""

    pool: str
    cutoff: int


class PoolStats(BaseModel):
    """Point-in-time counts for one pool."""

    pool: str
    total: int = 0
    reserved: int = 0
    sleeping: int = 0
    eligible: int = 0
