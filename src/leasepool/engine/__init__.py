"""LeasePool engine - reservation protocol and errors."""

from leasepool.engine.errors import (
    ConfigurationError,
    HandlerError,
    ItemNotFound,
    LeasePoolError,
    StoreUnavailable,
)
from leasepool.engine.reservation import ReservationManager

__all__ = [
    "ConfigurationError",
    "HandlerError",
    "ItemNotFound",
    "LeasePoolError",
    "ReservationManager",
    "StoreUnavailable",
]
