"""LeasePool database layer."""

from leasepool.db.base import Base, create_engine, create_session_factory, init_db, session_scope
from leasepool.db.tables import ItemTable, LocationSummaryTable

__all__ = [
    "Base",
    "ItemTable",
    "LocationSummaryTable",
    "create_engine",
    "create_session_factory",
    "init_db",
    "session_scope",
]
