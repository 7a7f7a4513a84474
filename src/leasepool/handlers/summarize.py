"""Summarize handler - folds weather observations into per-location totals."""

import asyncio
import random

from leasepool.engine.errors import HandlerError
from leasepool.handlers.base import ItemHandler
from leasepool.models import Item
from leasepool.store.base import SummaryStore


class SummarizeHandler(ItemHandler):
    """
    Adds an observation's temperature and dew point to its station summary.

    Intended for the single-shot ``queue`` pool filled by the replayer,
    with the REMOVE release policy.
    """

    name = "summarize"

    def __init__(self, summaries: SummaryStore, work_delay_seconds: float = 0.0):
        self.summaries = summaries
        self.work_delay_seconds = work_delay_seconds

    async def process(self, item: Item) -> None:
        payload = item.payload
        try:
            location = int(payload["location"])
            temp = float(payload["temp"])
            dewp = float(payload["dewp"])
        except KeyError as e:
            raise HandlerError(item.id, f"missing field {e.args[0]}") from e
        except (TypeError, ValueError) as e:
            raise HandlerError(item.id, str(e)) from e

        await self.summaries.increment(location, temp, dewp)

        if self.work_delay_seconds > 0:
            # Simulated workload
            await asyncio.sleep(self.work_delay_seconds + random.random() / 25)

    def describe(self, item: Item) -> str:
        payload = item.payload
        return f"location:{payload.get('location')}, date:{payload.get('date')}"
