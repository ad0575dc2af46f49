import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urlparse

import aiohttp

from .config import FetchConfig
from .errors import TransportError

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """A successful response. ``url`` is the final URL after redirects."""

    url: str
    status: int
    body: bytes
    content_type: str = ""


class Fetcher:
    """
    Fetches URLs over a shared aiohttp session, limiting concurrent requests
    per domain, pausing between requests, caching bodies, and retrying on 429s
    and transport failures.

    Use as an async context manager:

        async with Fetcher(config) as fetcher:
            result = await fetcher.fetch(url)
    """

    def __init__(self, config: Optional[FetchConfig] = None):
        self.config = config or FetchConfig()
        self.cache: Dict[str, FetchResult] = {}
        self._session: Optional[aiohttp.ClientSession] = None
        self._domain_slots: Dict[str, asyncio.Semaphore] = {}

    async def __aenter__(self):
        self._session = aiohttp.ClientSession(
            headers={"User-Agent": self.config.user_agent},
            timeout=aiohttp.ClientTimeout(total=self.config.timeout),
        )
        logger.debug("[Fetcher] Session opened")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._session:
            await self._session.close()
            self._session = None
            logger.debug("[Fetcher] Session closed")

    def _slot(self, url: str) -> asyncio.Semaphore:
        domain = urlparse(url).netloc
        if domain not in self._domain_slots:
            self._domain_slots[domain] = asyncio.Semaphore(max(1, self.config.parallelism))
        return self._domain_slots[domain]

    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch ``url`` and return its body.

        Raises TransportError for non-200 responses, or when every attempt
        failed at the transport level.
        """
        if self._session is None:
            raise RuntimeError("Fetcher used outside of its async context")

        if self.config.cache and url in self.cache:
            logger.debug(f"[Fetcher] Cache hit: {url}")
            return self.cache[url]

        # A cancelled request releases its slot straight away; only finished
        # attempts hold it for the politeness delay.
        async with self._slot(url):
            try:
                result = await self._request(url)
            except TransportError:
                await self._pause(url)
                raise
            await self._pause(url)

        if self.config.cache:
            self.cache[url] = result
        return result

    async def _pause(self, url: str) -> None:
        delay = self.config.delay
        if self.config.random_delay:
            delay += random.uniform(0, self.config.random_delay)
        if delay > 0:
            logger.debug(f"[Fetcher] Holding slot {delay:.2f}s after request to {url}")
            await asyncio.sleep(delay)

    async def _request(self, url: str) -> FetchResult:
        max_retries = max(1, self.config.max_retries)
        attempt = 0
        last_error = ""

        while attempt < max_retries:
            attempt += 1
            try:
                logger.debug(f"[Fetcher] GET {url} (attempt {attempt}/{max_retries})")
                async with self._session.get(url) as response:
                    if response.status == 200:
                        body = await response.read()
                        return FetchResult(
                            url=str(response.url),
                            status=response.status,
                            body=body,
                            content_type=response.headers.get("Content-Type", ""),
                        )
                    elif response.status == 429:
                        retry_after = _retry_after(response.headers.get("Retry-After"))
                        logger.warning(
                            f"[Fetcher] 429 at {url}; waiting {retry_after}s "
                            f"(attempt {attempt}/{max_retries})..."
                        )
                        last_error = "too many requests"
                        if attempt < max_retries:
                            await asyncio.sleep(retry_after)
                        else:
                            raise TransportError(url, 429, last_error)
                    else:
                        raise TransportError(url, response.status, response.reason or "")
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = str(e) or type(e).__name__
                logger.warning(
                    f"[Fetcher] Error fetching {url} (attempt {attempt}/{max_retries}): {last_error}"
                )
                if attempt < max_retries:
                    await asyncio.sleep(1)

        raise TransportError(url, None, last_error)


def _retry_after(value: Optional[str], default: int = 5) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return default
