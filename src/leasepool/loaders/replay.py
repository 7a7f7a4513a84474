"""Replayer - feeds GSOD weather observations into the single-shot ``queue`` pool."""

import asyncio
import logging
import random
import re
from pathlib import Path
from typing import Any, Iterator, Optional
from uuid import uuid4

from leasepool.cancellation import CancellationToken
from leasepool.models import Item
from leasepool.store.base import StoreAdapter

logger = logging.getLogger("leasepool.replay")

_NUMBER = re.compile(r"^[-+]?\d*\.?\d+(?:[eE][-+]?\d+)?")

# Column positions in a whitespace-split GSOD row.
_FLOAT_FIELDS = {
    "temp": 3,
    "dewp": 5,
    "slp": 7,
    "stp": 9,
    "visib": 11,
    "wdsp": 13,
    "mxspd": 15,
    "max": 17,
    "min": 18,
}


def _number(token: str) -> float:
    """Parse the numeric prefix of a GSOD value; flags like ``*`` are ignored."""
    match = _NUMBER.match(token)
    return float(match.group(0)) if match else 0.0


def parse_observation(line: str) -> dict[str, Any]:
    """Turn one GSOD data row into an item payload."""
    fields = line.split()
    if len(fields) <= max(_FLOAT_FIELDS.values()):
        raise ValueError(f"GSOD row has {len(fields)} fields, expected at least 19")

    payload: dict[str, Any] = {
        "location": int(fields[0]),
        "date": int(fields[2]),
    }
    for name, index in _FLOAT_FIELDS.items():
        payload[name] = _number(fields[index])
    return payload


def read_observations(path: Path) -> Iterator[dict[str, Any]]:
    """Yield payloads from a GSOD ``.op`` file, skipping the header row."""
    with open(path, encoding="utf-8") as f:
        f.readline()
        for line in f:
            if line.strip():
                yield parse_observation(line)


def select_files(directory: Path, count: int, rng: Optional[random.Random] = None) -> list[Path]:
    """Pick ``count`` ``.op`` files from a directory in random order."""
    files = sorted(directory.glob("*.op"))
    (rng or random.Random()).shuffle(files)
    return files[:count]


async def replay_file(
    store: StoreAdapter,
    path: Path,
    pool: str = "queue",
    delay_seconds: float = 1.0,
    token: Optional[CancellationToken] = None,
) -> int:
    """Insert a file's observations one at a time, ``delay_seconds`` apart."""
    count = 0
    for payload in read_observations(path):
        if token is not None and token.is_cancelled:
            break
        await store.insert_many([Item(id=uuid4().hex, pool=pool, payload=payload)])
        count += 1
        if token is not None:
            if await token.wait(delay_seconds):
                break
        elif delay_seconds > 0:
            await asyncio.sleep(delay_seconds)

    logger.info(f"Replayed {count} observations from {path.name}")
    return count


async def replay_files(
    store: StoreAdapter,
    paths: list[Path],
    pool: str = "queue",
    delay_seconds: float = 1.0,
    reset: bool = True,
    token: Optional[CancellationToken] = None,
) -> int:
    """Replay several files concurrently, one importer per file."""
    if reset:
        await store.clear_pool(pool)

    counts = await asyncio.gather(
        *(replay_file(store, path, pool, delay_seconds, token) for path in paths)
    )
    return sum(counts)
