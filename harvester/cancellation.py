"""
Shared cancellation signal threaded through every long-running loop.
"""

import asyncio
import logging

from .errors import HarvestCancelled

logger = logging.getLogger(__name__)


class CancelToken:
    """
    A one-shot signal. Components poll ``cancelled`` at loop tops and wrap
    blocking awaits in ``guard`` so they never outlive the signal.
    """

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        if not self._event.is_set():
            logger.info("[CancelToken] Cancellation requested")
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise HarvestCancelled()

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(self, awaitable):
        """
        Await ``awaitable`` unless the token fires first, in which case the
        pending work is cancelled and HarvestCancelled is raised.
        """
        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done():
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise HarvestCancelled()

    async def sleep(self, seconds: float) -> bool:
        """Sleep for ``seconds``; returns early (True) if the token fires."""
        if seconds <= 0:
            return self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True
