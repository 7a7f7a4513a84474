"""LeasePool command line entry point."""

import argparse
import asyncio
import logging
import random
import sys
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError

from leasepool.config import ReleasePolicy, Settings, load_settings
from leasepool.engine.errors import ConfigurationError, StoreUnavailable
from leasepool.engine.reservation import ReservationManager
from leasepool.handlers import HANDLER_NAMES, build_handler
from leasepool.loaders.replay import replay_files, select_files
from leasepool.loaders.seed import seed_users
from leasepool.runner import Runner
from leasepool.store.sql import SqlStore
from leasepool.utils.time import epoch_now

LOG_FORMAT = "%(asctime)s> %(message)s"
LOG_DATE_FORMAT = "%Y/%m/%d %H:%M:%S"

logger = logging.getLogger("leasepool")


def configure_logging(level: str) -> None:
    """Configure root logging as ``<timestamp>> <message>`` lines."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="leasepool",
        description="Lease-based work pool: workers, housekeeping and data loaders",
    )
    parser.add_argument(
        "--database-url",
        help="Store connection URL (default: LEASEPOOL_DATABASE_URL)",
    )
    parser.add_argument("--log-level", help="Logging level (default: LEASEPOOL_LOG_LEVEL)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create tables and indexes")

    seed = subparsers.add_parser("seed", help="Rebuild the users pool from a surname list")
    seed.add_argument("surnames", type=Path, help="File with one surname per line")
    seed.add_argument("--pool", default="users", help="Pool to fill (default: users)")
    seed.add_argument("--seed", type=int, help="Random seed for the shuffle")

    replay = subparsers.add_parser("replay", help="Feed GSOD weather rows into the queue pool")
    replay.add_argument("files", nargs="*", type=Path, help="GSOD .op files to replay")
    replay.add_argument(
        "--data-dir",
        type=Path,
        default=Path("sample_data"),
        help="Directory to pick .op files from when none are given (default: sample_data)",
    )
    replay.add_argument(
        "--concurrency",
        type=int,
        default=1,
        help="Number of files replayed at once when picking from --data-dir (default: 1)",
    )
    replay.add_argument("--pool", default="queue", help="Pool to fill (default: queue)")
    replay.add_argument(
        "--delay",
        type=float,
        default=1.0,
        help="Seconds between rows of one file (default: 1)",
    )
    replay.add_argument(
        "--keep",
        action="store_true",
        help="Keep existing items instead of clearing the pool first",
    )

    run = subparsers.add_parser("run", help="Run a worker and the housekeeping loop")
    run.add_argument("--pool", help="Pool to work on (default: LEASEPOOL_POOL)")
    run.add_argument("--handler", choices=HANDLER_NAMES, help="Item handler")
    run.add_argument(
        "--release-policy",
        choices=[policy.value for policy in ReleasePolicy],
        help="remove (single-shot queue) or advance (recurring pool)",
    )
    run.add_argument("--staleness-threshold", type=int, help="Stale lease age in seconds")
    run.add_argument("--housekeeping-interval", type=float, help="Sweep interval in seconds")
    run.add_argument("--backoff", type=float, help="Idle wait in seconds")
    run.add_argument("--cooldown", type=int, help="Release cool-down in seconds")
    run.add_argument(
        "--max-items",
        type=int,
        help="Stop after this many attempts (items claimed and released, failed ones included)",
    )
    run.add_argument(
        "--work-delay",
        type=float,
        default=0.0,
        help="Simulated work per item in seconds (summarize handler)",
    )
    run.add_argument("--init-db", action="store_true", help="Create tables before starting")

    stats = subparsers.add_parser("stats", help="Show lease state counts for a pool")
    stats.add_argument("--pool", help="Pool to inspect (default: LEASEPOOL_POOL)")

    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Environment settings with command line flags layered on top."""
    return load_settings(
        database_url=args.database_url,
        log_level=args.log_level,
        pool=getattr(args, "pool", None) if args.command in ("run", "stats") else None,
        handler=getattr(args, "handler", None),
        release_policy=getattr(args, "release_policy", None),
        staleness_threshold_seconds=getattr(args, "staleness_threshold", None),
        housekeeping_interval_seconds=getattr(args, "housekeeping_interval", None),
        worker_backoff_seconds=getattr(args, "backoff", None),
        release_cooldown_seconds=getattr(args, "cooldown", None),
    )


async def run_command(args: argparse.Namespace, settings: Settings) -> int:
    store = SqlStore.from_url(settings.database_url, echo=settings.debug)
    try:
        if args.command == "init-db" or getattr(args, "init_db", False):
            await store.init_schema()
            logger.info("Database initialized")
            if args.command == "init-db":
                return 0

        if args.command == "seed":
            rng = random.Random(args.seed) if args.seed is not None else None
            await seed_users(store, args.surnames, pool=args.pool, rng=rng)
            return 0

        if args.command == "replay":
            paths = list(args.files) or select_files(args.data_dir, args.concurrency)
            if not paths:
                raise ConfigurationError(f"No .op files to replay in {args.data_dir}")
            total = await replay_files(
                store, paths, pool=args.pool, delay_seconds=args.delay, reset=not args.keep
            )
            logger.info(f"Replayed {total} observations from {len(paths)} files")
            return 0

        if args.command == "stats":
            stats = await store.pool_stats(settings.pool, epoch_now())
            print(
                f"pool={stats.pool} total={stats.total} reserved={stats.reserved} "
                f"sleeping={stats.sleeping} eligible={stats.eligible}"
            )
            return 0

        manager = ReservationManager.from_settings(store, settings)
        handler = build_handler(settings.handler, store, work_delay_seconds=args.work_delay)
        runner = Runner(store, manager, handler, settings, max_items=args.max_items)
        await runner.run()
        return 0
    finally:
        await store.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the ``leasepool`` command."""
    args = build_parser().parse_args(argv)

    try:
        settings = settings_from_args(args)
    except ValidationError as e:
        configure_logging("INFO")
        logger.error(f"Invalid configuration: {e}")
        return 2

    configure_logging(settings.log_level)

    try:
        return asyncio.run(run_command(args, settings))
    except ConfigurationError as e:
        logger.error(e.message)
        return 2
    except StoreUnavailable as e:
        logger.error(e.message)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
