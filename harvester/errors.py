"""
Error types raised by the harvester and the report that collects them.
"""

from dataclasses import dataclass, field
from typing import List, Optional


class HarvestError(Exception):
    """Base class for every harvester error."""


class ConfigurationError(HarvestError):
    """A scraper was set up with inputs it can't run with."""


class EmptyRootPagesError(ConfigurationError):
    def __init__(self):
        super().__init__("empty root page list")


class TransportError(HarvestError):
    """A fetch failed or came back with a non-success status."""

    def __init__(self, url: str, status: Optional[int] = None, reason: str = ""):
        self.url = url
        self.status = status
        self.reason = reason
        message = f"fetch failed for {url}"
        if status is not None:
            message += f" (status {status})"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class StorageError(HarvestError):
    """An image could not be written to local storage."""

    def __init__(self, name: str, path: str, reason: str = ""):
        self.name = name
        self.path = path
        super().__init__(f"could not create {path}: {reason}" if reason else f"could not create {path}")


class HarvestCancelled(HarvestError):
    """The shared cancellation signal fired."""

    def __init__(self, message: str = "harvest cancelled"):
        super().__init__(message)


class FrontierClosedError(HarvestError):
    """Something wrote to, or closed, a frontier that is already closed."""


@dataclass
class HarvestReport:
    """
    Aggregated outcome of one harvest run. Per-item failures land in
    ``errors`` instead of aborting the run.
    """

    retailer: str
    root_pages: int = 0
    category_pages: int = 0
    products_discovered: int = 0
    products_processed: int = 0
    images_written: int = 0
    swatches_skipped: int = 0
    duplicates_skipped: int = 0
    cancelled: bool = False
    errors: List[HarvestError] = field(default_factory=list)

    def record(self, error: HarvestError) -> None:
        self.errors.append(error)

    @property
    def ok(self) -> bool:
        return not self.errors and not self.cancelled

    def summary(self) -> str:
        text = (
            f"{self.retailer}: {self.root_pages} root page(s), "
            f"{self.category_pages} category page(s), "
            f"{self.products_discovered} product(s) discovered, "
            f"{self.products_processed} processed, "
            f"{self.images_written} image(s) written, "
            f"{self.swatches_skipped} swatch(es) and "
            f"{self.duplicates_skipped} duplicate(s) skipped, "
            f"{len(self.errors)} error(s)"
        )
        if self.cancelled:
            text += " [cancelled]"
        return text
