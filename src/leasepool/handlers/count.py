"""Count handler - bumps a per-user counter on each pass over the pool."""

from leasepool.engine.errors import ItemNotFound
from leasepool.handlers.base import ItemHandler
from leasepool.models import Item
from leasepool.store.base import StoreAdapter


class CountHandler(ItemHandler):
    """Increments ``payload['counter']``; meant for the recurring ``users`` pool."""

    name = "count"

    def __init__(self, store: StoreAdapter):
        self.store = store

    async def process(self, item: Item) -> None:
        payload = dict(item.payload)
        payload["counter"] = int(payload.get("counter", 0)) + 1
        if not await self.store.update_one(item.id, {"payload": payload}):
            raise ItemNotFound(item.id)

    def describe(self, item: Item) -> str:
        return f"user:{item.id}"
