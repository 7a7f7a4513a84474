"""Seeder - builds the recurring ``users`` pool from a surname list."""

import logging
import random
import string
from pathlib import Path
from typing import Iterable, Iterator, Optional

from leasepool.models import Item
from leasepool.store.base import StoreAdapter

logger = logging.getLogger("leasepool.seed")

BATCH_SIZE = 1000


def usernames_from_surnames(surnames: Iterable[str]) -> Iterator[str]:
    """Yield ``<letter>_<surname>`` for every letter a-z and every surname.

    Surnames are lowercased with all whitespace removed; blank lines and
    repeats are skipped.
    """
    seen: set[str] = set()
    for line in surnames:
        surname = "".join(line.lower().split())
        if not surname or surname in seen:
            continue
        seen.add(surname)
        for letter in string.ascii_lowercase:
            yield f"{letter}_{surname}"


def build_user_items(
    surnames: Iterable[str],
    pool: str = "users",
    rng: Optional[random.Random] = None,
) -> list[Item]:
    """Create fresh user items in random order so storage order is not alphabetical."""
    usernames = list(usernames_from_surnames(surnames))
    (rng or random.Random()).shuffle(usernames)
    return [
        Item(id=username, pool=pool, payload={"counter": 0})
        for username in usernames
    ]


async def seed_users(
    store: StoreAdapter,
    surnames_path: Path,
    pool: str = "users",
    rng: Optional[random.Random] = None,
) -> int:
    """Replace the pool's contents with one item per generated username."""
    with open(surnames_path, encoding="utf-8") as f:
        items = build_user_items(f, pool=pool, rng=rng)

    removed = await store.clear_pool(pool)
    if removed:
        logger.info(f"Removed {removed} existing items from pool {pool}")

    inserted = 0
    for start in range(0, len(items), BATCH_SIZE):
        inserted += await store.insert_many(items[start:start + BATCH_SIZE])

    logger.info(f"Seeded {inserted} items into pool {pool}")
    return inserted
