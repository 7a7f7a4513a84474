"""Data loaders that fill pools: user seeding and weather replay."""

from leasepool.loaders.replay import parse_observation, replay_files, select_files
from leasepool.loaders.seed import build_user_items, seed_users

__all__ = [
    "build_user_items",
    "parse_observation",
    "replay_files",
    "seed_users",
    "select_files",
]
