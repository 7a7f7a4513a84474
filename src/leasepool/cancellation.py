"""Cooperative cancellation shared by the runner and its loops."""

import asyncio


class CancellationToken:
    """Read-only view of a cancellation source, handed to the loops."""

    def __init__(self, event: asyncio.Event):
        self._event = event

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self, timeout: float) -> bool:
        """
        Sleep for up to ``timeout`` seconds, returning early on cancellation.

        Returns True if cancellation was requested.
        """
        if self._event.is_set():
            return True
        if timeout <= 0:
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        return self._event.is_set()


class CancellationSource:
    """Owner side of a broadcast-once cancellation signal."""

    def __init__(self):
        self._event = asyncio.Event()
        self.token = CancellationToken(self._event)

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """Request cancellation. Returns True only for the first request."""
        if self._event.is_set():
            return False
        self._event.set()
        return True
