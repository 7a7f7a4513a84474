"""LeasePool background loops."""

from leasepool.tasks.housekeeping import HousekeepingLoop
from leasepool.tasks.worker import WorkerLoop, retry_backoff

__all__ = ["HousekeepingLoop", "WorkerLoop", "retry_backoff"]
