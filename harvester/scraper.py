import asyncio
import logging
from typing import Iterable, List, Optional

from .cancellation import CancelToken
from .config import DOWNLOAD_WORKERS, FRONTIER_CAPACITY, PRODUCT_DELAY
from .discovery import DiscoveryDriver
from .downloader import DownloaderPool
from .errors import ConfigurationError, EmptyRootPagesError, HarvestError, HarvestReport
from .frontier import Frontier
from .retailers import RetailerProfile


class RetailerScraper:
    """
    Harvests product images for one retailer.

    Discovery drivers (one per root page) and the downloader pool run
    concurrently around a shared frontier, which is closed once every driver
    has returned.
    """

    def __init__(
        self,
        profile: RetailerProfile,
        root_pages: Iterable[str],
        fetcher,
        store,
        download_fetcher=None,
        workers: int = DOWNLOAD_WORKERS,
        delay: float = PRODUCT_DELAY,
        capacity: int = FRONTIER_CAPACITY,
        logger: Optional[logging.Logger] = None,
    ):
        """
        :param profile: Selectors and product-URL rule for the retailer.
        :param root_pages: Category entry points; must not be empty when processed.
        :param fetcher: Used for category pages.
        :param store: Sink the images are written to.
        :param download_fetcher: Used for product pages and images (defaults to ``fetcher``).
        """
        self.profile = profile
        self.root_pages = tuple(root_pages or ())
        self.fetcher = fetcher
        self.download_fetcher = download_fetcher or fetcher
        self.store = store
        self.workers = workers
        self.delay = delay
        self.capacity = capacity
        self.logger = logger or logging.getLogger(__name__)

        self.logger.info(
            f"[RetailerScraper] Initialized {profile.name} with {len(self.root_pages)} root page(s), "
            f"workers={workers}"
        )

    async def process(self, token: CancelToken) -> HarvestReport:
        """
        Discover and download every product image reachable from the root pages.

        Raises EmptyRootPagesError when there are no root pages, and
        HarvestCancelled when ``token`` fired before any discovery started.
        Once work is under way, failures and cancellation are reported through
        the returned HarvestReport.
        """
        if not self.root_pages:
            self.logger.error(f"[RetailerScraper] {self.profile.name}: {EmptyRootPagesError()}")
            raise EmptyRootPagesError()
        if not self.profile.supports_discovery:
            raise ConfigurationError(f"{self.profile.name} has no category selectors to crawl with")
        token.raise_if_cancelled()

        report = HarvestReport(retailer=self.profile.name)
        frontier = Frontier(self.capacity)

        drivers: List[asyncio.Task] = []
        for page in self.root_pages:
            if token.cancelled:
                break
            driver = DiscoveryDriver(self.profile, self.fetcher, frontier, token, report, logger=self.logger)
            drivers.append(asyncio.create_task(driver.run(page)))
        report.root_pages = len(drivers)

        # Close the frontier after all product URL collection is done.
        closer = asyncio.create_task(self._close_when_done(drivers, frontier, report))

        pool = self._pool(token, report)
        try:
            await pool.run(frontier)
        except BaseException:
            # Nothing is draining any more; don't leave drivers blocked on a full frontier.
            for driver in drivers:
                driver.cancel()
            raise
        finally:
            await closer

        report.cancelled = token.cancelled
        self.logger.info(f"[RetailerScraper] {report.summary()}")
        return report

    async def rip_products(self, product_ids: Iterable[str], token: CancelToken) -> HarvestReport:
        """Download the images of specific products, skipping discovery."""
        product_ids = [pid for pid in product_ids if pid]
        if not product_ids:
            raise ConfigurationError("must supply at least one product id")
        token.raise_if_cancelled()

        report = HarvestReport(retailer=self.profile.name)
        frontier = Frontier(max(self.capacity, len(product_ids)))
        for pid in product_ids:
            await frontier.put(self.profile.product_page(pid))
            report.products_discovered += 1
        await frontier.close()

        await self._pool(token, report).run(frontier)

        report.cancelled = token.cancelled
        self.logger.info(f"[RetailerScraper] {report.summary()}")
        return report

    def _pool(self, token: CancelToken, report: HarvestReport) -> DownloaderPool:
        return DownloaderPool(
            self.profile,
            self.download_fetcher,
            self.store,
            token,
            report,
            workers=self.workers,
            delay=self.delay,
            logger=self.logger,
        )

    async def _close_when_done(
        self, drivers: List[asyncio.Task], frontier: Frontier, report: HarvestReport
    ) -> None:
        results = await asyncio.gather(*drivers, return_exceptions=True)
        for result in results:
            if isinstance(result, HarvestError):
                report.record(result)
            elif isinstance(result, BaseException):
                self.logger.error(f"[RetailerScraper] Discovery driver raised an exception: {result!r}")
                report.record(HarvestError(f"discovery driver failed: {result!r}"))
        self.logger.info(f"[RetailerScraper] Discovery finished, closing frontier ({len(frontier)} pending)")
        await frontier.close()
