"""Observability helpers for LeasePool."""

from leasepool.observability.metrics import metrics

__all__ = ["metrics"]
