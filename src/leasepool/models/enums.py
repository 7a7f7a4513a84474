"""LeasePool enumerations."""

from enum import Enum


class Outcome(str, Enum):
    """Result of processing one leased item."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
