import asyncio
import hashlib
import logging
import posixpath
import re
from contextlib import aclosing
from typing import Dict, Optional, Set
from urllib.parse import unquote, urljoin, urlparse

from .cancellation import CancelToken
from .config import DOWNLOAD_WORKERS, MAX_FILENAME_LENGTH, PRODUCT_DELAY, SWATCH_MARKER
from .errors import ConfigurationError, HarvestCancelled, HarvestReport, StorageError, TransportError
from .extractor import extract
from .frontier import Frontier
from .retailers import RetailerProfile

UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


def derive_image_name(url: str) -> str:
    """
    Name an image after the last segment of its URL path, without any
    extension. ``.../Product_12345_fpx.tif?wid=800`` becomes ``Product_12345_fpx``.
    """
    filename = unquote(posixpath.basename(urlparse(url).path))
    name = UNSAFE_NAME_CHARS.sub("_", filename.split(".")[0])
    return name or "index"


def is_swatch(name: str, marker: str = SWATCH_MARKER) -> bool:
    return marker.lower() in name.lower()


def truncate_name(name: str, limit: int = MAX_FILENAME_LENGTH) -> str:
    return name[:limit]


class DownloaderPool:
    """
    A fixed number of workers draining the frontier. For every product page a
    worker pulls, it downloads each image on the page and hands it to the
    store, then pauses before taking the next product.

    Failures on one page, image or file are logged and recorded in the report;
    the worker moves on.
    """

    def __init__(
        self,
        profile: RetailerProfile,
        fetcher,
        store,
        token: CancelToken,
        report: HarvestReport,
        workers: int = DOWNLOAD_WORKERS,
        delay: float = PRODUCT_DELAY,
        max_name_length: int = MAX_FILENAME_LENGTH,
        logger: Optional[logging.Logger] = None,
    ):
        if workers < 1:
            raise ConfigurationError("downloader pool needs at least one worker")
        self.profile = profile
        self.fetcher = fetcher
        self.store = store
        self.token = token
        self.report = report
        self.workers = workers
        self.delay = delay
        self.max_name_length = max_name_length
        self.logger = logger or logging.getLogger(__name__)
        self._names: Set[str] = set()
        self._digests: Dict[str, str] = {}

    async def run(self, frontier: Frontier) -> None:
        """Run every worker until the frontier is closed and drained, or cancellation."""
        self.logger.info(f"[DownloaderPool] Starting {self.workers} worker(s)")
        tasks = [
            asyncio.create_task(self._worker(f"worker-{i}", frontier))
            for i in range(self.workers)
        ]
        await asyncio.gather(*tasks)
        self.logger.info("[DownloaderPool] All workers finished")

    async def _worker(self, name: str, frontier: Frontier) -> None:
        async with aclosing(frontier.drain()) as product_urls:
            async for product_url in product_urls:
                if self.token.cancelled:
                    self.logger.info(f"[DownloaderPool] {name} stopping: cancelled")
                    return
                try:
                    processed = await self.process_product(product_url)
                except HarvestCancelled:
                    self.logger.info(f"[DownloaderPool] {name} stopping mid-product: {product_url}")
                    return
                if processed:
                    self.report.products_processed += 1

                # Respect the target site's rate limits.
                await self.token.sleep(self.delay)

        self.logger.debug(f"[DownloaderPool] {name} drained the frontier")

    async def process_product(self, product_url: str) -> bool:
        """
        Download and store every image on one product page. Returns False if
        the page itself could not be fetched.
        """
        try:
            page = await self.token.guard(self.fetcher.fetch(product_url))
        except TransportError as e:
            self.logger.error(f"[DownloaderPool] Product page failed: {e.reason or e} URL: {product_url} status: {e.status}")
            self.report.record(e)
            return False

        for image in extract(page.body, self.profile.image_selector):
            src = image.attr("src").strip()
            if src:
                await self._save_image(urljoin(page.url, src))
        return True

    async def _save_image(self, image_url: str) -> None:
        try:
            result = await self.token.guard(self.fetcher.fetch(image_url))
        except TransportError as e:
            self.logger.error(f"[DownloaderPool] Image failed: {e.reason or e} URL: {image_url} status: {e.status}")
            self.report.record(e)
            return

        name = derive_image_name(result.url)
        # We don't want swatches
        if is_swatch(name):
            self.logger.debug(f"[DownloaderPool] Skipping swatch {image_url}")
            self.report.swatches_skipped += 1
            return

        digest = hashlib.sha1(result.body).hexdigest()
        if digest in self._digests:
            self.logger.debug(
                f"[DownloaderPool] Already stored as {self._digests[digest]}, skipping {image_url}"
            )
            self.report.duplicates_skipped += 1
            return

        name = self._claim_name(truncate_name(name, self.max_name_length))
        self._digests[digest] = name

        try:
            self.store.write(name, result.body)
        except StorageError as e:
            self.logger.error(f"[DownloaderPool] {e}")
            self.report.record(e)
            self._names.discard(name)
            del self._digests[digest]
            return
        self.report.images_written += 1

    def _claim_name(self, name: str) -> str:
        """
        Reserve ``name`` for this run, or ``name_2``, ``name_3``... when a
        different image already took it. The stem is trimmed so the result
        stays within ``max_name_length``.
        """
        candidate = name
        counter = 1
        while candidate in self._names:
            counter += 1
            suffix = f"_{counter}"
            candidate = name[: self.max_name_length - len(suffix)] + suffix
        self._names.add(candidate)
        return candidate
