"""LeasePool data models."""

from leasepool.models.enums import Outcome
from leasepool.models.item import (
    UNRESERVED,
    ClaimCriteria,
    Item,
    PoolStats,
    StaleCriteria,
)
from leasepool.models.summary import LocationSummary

__all__ = [
    "ClaimCriteria",
    "Item",
    "LocationSummary",
    "Outcome",
    "PoolStats",
    "StaleCriteria",
    "UNRESERVED",
]
