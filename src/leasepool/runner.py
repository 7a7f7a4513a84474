"""Runner - wires the worker and housekeeping loops to one cancellation signal."""

import asyncio
import logging
import signal
import threading
from typing import Optional

from leasepool.cancellation import CancellationSource
from leasepool.config import Settings
from leasepool.engine.errors import ConfigurationError, StoreUnavailable
from leasepool.engine.reservation import ReservationManager
from leasepool.handlers.base import ItemHandler
from leasepool.store.base import StoreAdapter
from leasepool.tasks.housekeeping import HousekeepingLoop
from leasepool.tasks.worker import WorkerLoop

logger = logging.getLogger("leasepool.runner")

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class Runner:
    """
    Runs one worker loop and one housekeeping loop until shutdown.

    SIGINT and SIGTERM (or ``request_shutdown``) cancel both loops
    cooperatively: each finishes what it is doing, including releasing an
    in-flight item, then exits. ``run`` returns only after both have joined.
    """

    def __init__(
        self,
        store: StoreAdapter,
        manager: ReservationManager,
        handler: ItemHandler,
        settings: Settings,
        max_items: Optional[int] = None,
        handle_signals: bool = True,
    ):
        self.store = store
        self.manager = manager
        self.settings = settings
        self.handle_signals = handle_signals
        self.source = CancellationSource()

        self.worker = WorkerLoop(
            manager,
            handler,
            self.source.token,
            backoff_seconds=settings.worker_backoff_seconds,
            store_retry_backoff_seconds=settings.store_retry_backoff_seconds,
            store_retry_max_backoff_seconds=settings.store_retry_max_backoff_seconds,
            max_items=max_items,
        )
        self.housekeeping = HousekeepingLoop(
            manager,
            self.source.token,
            interval_seconds=settings.housekeeping_interval_seconds,
            threshold_seconds=settings.staleness_threshold_seconds,
            jitter=settings.housekeeping_jitter,
        )
        self._previous_handlers: dict[signal.Signals, object] = {}
        self._loop_handlers: list[signal.Signals] = []

    def request_shutdown(self, reason: str = "shutdown requested") -> None:
        """Cancel both loops. Only the first request has any effect."""
        if self.source.cancel():
            logger.info(f" Exiting cleanly... ({reason})")

    async def run(self) -> None:
        await self._check_store()

        loop = asyncio.get_running_loop()
        if self.handle_signals:
            self._install_signal_handlers(loop)

        try:
            tasks = [
                asyncio.create_task(self.housekeeping.run(), name="leasepool-housekeeping"),
                asyncio.create_task(self.worker.run(), name="leasepool-worker"),
            ]
            await self._join(tasks)
        finally:
            if self.handle_signals:
                self._restore_signal_handlers(loop)

        logger.info("Exited cleanly")

    async def _check_store(self) -> None:
        """Fail before any loop starts if the store cannot be reached."""
        try:
            await self.store.ping()
        except StoreUnavailable as e:
            raise ConfigurationError(f"Cannot reach store at startup: {e.message}") from e

    async def _join(self, tasks: list[asyncio.Task]) -> None:
        """Wait for both loops; when one stops for any reason, stop the other."""
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            self.source.cancel()
            await asyncio.wait(tasks)
            raise

        # A loop that exits without cancellation (max_items reached, or a
        # crash) takes the other one down with it.
        self.source.cancel()
        await asyncio.wait(tasks)

        for task in tasks:
            if task.cancelled():
                continue
            error = task.exception()
            if error is not None:
                logger.error(f"{task.get_name()} crashed: {error}", exc_info=error)
                raise error

    def _on_signal(self, signum: int) -> None:
        self.request_shutdown(signal.Signals(signum).name)

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
                self._loop_handlers.append(sig)
            except NotImplementedError:
                # Event loops without signal support (Windows): fall back to
                # signal.signal, which only works on the main thread.
                if threading.current_thread() is not threading.main_thread():
                    logger.debug(f"Skipping {sig.name} handler on non-main thread")
                    continue
                self._previous_handlers[sig] = signal.getsignal(sig)
                signal.signal(
                    sig,
                    lambda signum, frame: loop.call_soon_threadsafe(self._on_signal, signum),
                )
            except (ValueError, RuntimeError) as e:
                # Signal handlers can only be set in the main thread
                logger.debug(f"Could not install {sig.name} handler: {e}")

    def _restore_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in self._loop_handlers:
            loop.remove_signal_handler(sig)
        self._loop_handlers.clear()

        for sig, previous in self._previous_handlers.items():
            signal.signal(sig, previous)
        self._previous_handlers.clear()
