"""Item handlers and their registry."""

from leasepool.engine.errors import ConfigurationError
from leasepool.handlers.base import ItemHandler
from leasepool.handlers.count import CountHandler
from leasepool.handlers.summarize import SummarizeHandler
from leasepool.store.base import StoreAdapter

HANDLER_NAMES = ("summarize", "count")


def build_handler(name: str, store: StoreAdapter, work_delay_seconds: float = 0.0) -> ItemHandler:
    """Instantiate a registered handler by name."""
    if name == "summarize":
        return SummarizeHandler(store.summaries(), work_delay_seconds=work_delay_seconds)
    if name == "count":
        return CountHandler(store)
    raise ConfigurationError(
        f"Unknown handler {name!r}; expected one of: {', '.join(HANDLER_NAMES)}"
    )


__all__ = [
    "CountHandler",
    "HANDLER_NAMES",
    "ItemHandler",
    "SummarizeHandler",
    "build_handler",
]
