"""Item handler interface - domain work run on a leased item."""

from abc import ABC, abstractmethod

from leasepool.models import Item


class ItemHandler(ABC):
    """Performs the domain side effect for one leased item.

    The worker loop releases the lease after ``process`` returns or raises,
    so a handler never touches reservation fields. If the process dies
    between the side effect and the release, the item is reclaimed later
    and processed again; handlers that must not double-apply need their own
    idempotency.
    """

    name: str = ""

    @abstractmethod
    async def process(self, item: Item) -> None:
        pass

    def describe(self, item: Item) -> str:
        """Short description of the item for the processed log line."""
        return f"id:{item.id}"
