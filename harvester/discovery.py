import logging
from typing import Optional
from urllib.parse import urljoin

from .cancellation import CancelToken
from .errors import HarvestCancelled, HarvestReport, TransportError
from .extractor import extract, first
from .fetcher import FetchResult
from .frontier import Frontier
from .retailers import RetailerProfile


class DiscoveryDriver:
    """
    Walks the categories reachable from a root page and feeds every product
    URL it finds into the frontier.

    A page that fails to fetch is logged and its branch dropped; sibling
    categories and other drivers carry on. The driver never closes the
    frontier, that is left to whoever started it.
    """

    def __init__(
        self,
        profile: RetailerProfile,
        fetcher,
        frontier: Frontier,
        token: CancelToken,
        report: HarvestReport,
        logger: Optional[logging.Logger] = None,
    ):
        self.profile = profile
        self.fetcher = fetcher
        self.frontier = frontier
        self.token = token
        self.report = report
        self.logger = logger or logging.getLogger(__name__)

    async def run(self, root_page: str) -> None:
        """Collect every product reachable from ``root_page``."""
        try:
            await self._run(root_page)
        except HarvestCancelled:
            self.logger.info(f"[DiscoveryDriver] Cancelled while discovering {root_page}")

    async def _run(self, root_page: str) -> None:
        self.token.raise_if_cancelled()
        self.logger.info(f"[DiscoveryDriver] Starting discovery from {root_page}")

        root_page = urljoin(self.profile.base_url, root_page)
        page = await self._visit(root_page)
        if page is None:
            return

        categories = extract(page.body, self.profile.root_category_selector)
        self.logger.info(f"[DiscoveryDriver] {len(categories)} categories on {root_page}")
        for link in categories:
            category_url = self._resolve(link.attr("href"), page.url)
            if category_url:
                await self.walk(category_url)

        self.logger.info(f"[DiscoveryDriver] Finished discovery from {root_page}")

    async def walk(self, category_url: str) -> None:
        """
        Visit ``category_url`` and each "next page" after it, pushing the
        product links from every page. Stops when a page has no next link.
        """
        seen = set()
        next_url = category_url

        while next_url:
            self.token.raise_if_cancelled()
            if next_url in seen:
                self.logger.warning(f"[DiscoveryDriver] Pagination loops back to {next_url}; stopping")
                return
            seen.add(next_url)

            page = await self._visit(next_url)
            if page is None:
                return
            self.report.category_pages += 1

            for link in extract(page.body, self.profile.product_selector):
                product_url = self._resolve(link.attr("href"), page.url)
                # Only accept the link if it is a product URL
                if product_url and self.profile.is_product_url(product_url):
                    await self.token.guard(self.frontier.put(product_url))
                    self.report.products_discovered += 1
                    self.logger.debug(f"[DiscoveryDriver] Product URL found: {product_url}")

            next_url = self._next_page(page)

    def _next_page(self, page: FetchResult) -> Optional[str]:
        if not self.profile.next_page_selector:
            return None
        link = first(page.body, self.profile.next_page_selector)
        if link is None:
            return None
        return self._resolve(link.attr("href"), page.url)

    def _resolve(self, href: str, page_url: str) -> Optional[str]:
        """Resolve ``href`` relative to the page it was found on."""
        href = href.strip()
        if not href:
            return None
        return urljoin(page_url, href)

    async def _visit(self, url: str) -> Optional[FetchResult]:
        try:
            return await self.token.guard(self.fetcher.fetch(url))
        except TransportError as e:
            self.logger.error(f"[DiscoveryDriver] Error: {e.reason or e} URL: {url} status: {e.status}")
            self.report.record(e)
            return None
