import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional, Sequence

from harvester.cancellation import CancelToken
from harvester.config import (
    DOWNLOAD_WORKERS,
    OUTPUT_DIR,
    PRODUCT_DELAY,
    discovery_fetch_config,
    download_fetch_config,
)
from harvester.errors import HarvestError
from harvester.fetcher import Fetcher
from harvester.retailers import RETAILERS, get_profile
from harvester.scraper import RetailerScraper
from harvester.storage import ImageStore

logger = logging.getLogger(__name__)

COMMANDS = ("crawl", "rip")


def setup_logging(verbose: bool = False):
    """
    Configure Python's built-in logging with a basic format to stdout.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(name)s - %(message)s"
    )


def _ensure_command_prefix(argv: Sequence[str]) -> Sequence[str]:
    if not argv:
        return ("crawl",)
    first = argv[0]
    if first in COMMANDS or first in ("-h", "--help"):
        return argv
    return ("crawl", *argv)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Harvest product images from retailer catalogs.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--output", default=OUTPUT_DIR, help="Directory images are written to")
    common.add_argument("--workers", type=int, default=DOWNLOAD_WORKERS, help="Number of downloader workers")
    common.add_argument("--delay", type=float, default=PRODUCT_DELAY, help="Seconds each worker pauses after a product")
    common.add_argument("--verbose", action="store_true", help="Enable debug logging")

    crawl = subparsers.add_parser("crawl", parents=[common], help="Discover products from category pages")
    crawl.add_argument("retailers", nargs="*", help=f"Retailers to crawl ({', '.join(sorted(RETAILERS))})")
    crawl.add_argument(
        "--root-page",
        action="append",
        dest="root_pages",
        help="Root category page to start from instead of the retailer's defaults (repeatable; needs exactly one retailer)",
    )

    rip = subparsers.add_parser("rip", parents=[common], help="Download images for specific product ids")
    rip.add_argument("retailer", help="Retailer the product ids belong to")
    rip.add_argument("product_ids", nargs="+", help="One or more product ids")
    return parser


def install_interrupt_handler(token: CancelToken) -> None:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except NotImplementedError:
        logger.warning("[main] SIGINT handler not supported on this platform")


async def crawl(args) -> int:
    token = CancelToken()
    install_interrupt_handler(token)

    if args.retailers:
        profiles = [get_profile(name) for name in args.retailers]
    else:
        profiles = [p for p in RETAILERS.values() if p.default_root_pages]
    logger.info("Crawling retailers: %s", [p.name for p in profiles])

    store = ImageStore(args.output)
    failures = 0
    reports = []
    async with Fetcher(discovery_fetch_config()) as pages, Fetcher(download_fetch_config(args.workers)) as downloads:
        for profile in profiles:
            if token.cancelled:
                break
            scraper = RetailerScraper(
                profile,
                args.root_pages or profile.default_root_pages,
                pages,
                store,
                download_fetcher=downloads,
                workers=args.workers,
                delay=args.delay,
            )
            try:
                reports.append(await scraper.process(token))
            except HarvestError as exc:
                failures += 1
                logger.error("[main] %s failed: %s", profile.name, exc)

    logger.info("All retailers processed. Final results:")
    for report in reports:
        logger.info("- %s", report.summary())
    return 1 if failures else 0


async def rip(args) -> int:
    token = CancelToken()
    install_interrupt_handler(token)

    profile = get_profile(args.retailer)
    async with Fetcher(download_fetch_config(args.workers)) as downloads:
        scraper = RetailerScraper(
            profile, (), downloads, ImageStore(args.output), workers=args.workers, delay=args.delay
        )
        try:
            report = await scraper.rip_products(args.product_ids, token)
        except HarvestError as exc:
            logger.error("[main] %s failed: %s", profile.name, exc)
            return 1

    logger.info("Done: %s", report.summary())
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point.
    Usage:
        python main.py [crawl] [RETAILER ...] [--root-page URL ...]
        python main.py rip RETAILER PID [PID ...]
    If no retailers are given, every retailer with default root pages is crawled.
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    args = parser.parse_args(_ensure_command_prefix(argv))
    if args.command == "crawl" and args.root_pages and len(args.retailers) != 1:
        parser.error("--root-page needs exactly one retailer")
    setup_logging(args.verbose)

    try:
        if args.command == "rip":
            return asyncio.run(rip(args))
        return asyncio.run(crawl(args))
    except HarvestError as exc:
        logger.error("[main] %s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
