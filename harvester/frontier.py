"""
The frontier: a bounded FIFO of product URLs shared between the discovery
drivers (writers) and the downloader workers (readers).
"""

import asyncio
import logging
from collections import deque
from typing import AsyncIterator, Optional

from .config import FRONTIER_CAPACITY
from .errors import FrontierClosedError

logger = logging.getLogger(__name__)


class Frontier:
    """
    ``put`` blocks while the queue is full. ``close`` must be called exactly
    once, after every writer has finished; readers then see the remaining
    items followed by exhaustion. Each item goes to exactly one reader.
    """

    def __init__(self, capacity: int = FRONTIER_CAPACITY):
        if capacity < 1:
            raise ValueError("frontier capacity must be at least 1")
        self.capacity = capacity
        self._items = deque()
        self._closed = False
        self._changed = asyncio.Condition()

    def __len__(self) -> int:
        return len(self._items)

    @property
    def closed(self) -> bool:
        return self._closed

    async def put(self, url: str) -> None:
        async with self._changed:
            await self._changed.wait_for(
                lambda: self._closed or len(self._items) < self.capacity
            )
            if self._closed:
                raise FrontierClosedError(f"put after close: {url}")
            self._items.append(url)
            self._changed.notify_all()

    async def close(self) -> None:
        async with self._changed:
            if self._closed:
                raise FrontierClosedError("frontier closed twice")
            self._closed = True
            logger.debug(f"[Frontier] Closed with {len(self._items)} item(s) pending")
            self._changed.notify_all()

    async def get(self) -> Optional[str]:
        """Next URL, or None once the frontier is closed and empty."""
        async with self._changed:
            await self._changed.wait_for(lambda: self._closed or self._items)
            if not self._items:
                return None
            url = self._items.popleft()
            self._changed.notify_all()
            return url

    async def drain(self) -> AsyncIterator[str]:
        while True:
            url = await self.get()
            if url is None:
                return
            yield url
