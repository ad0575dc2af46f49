"""
Global configuration settings for the product image harvester.
"""

from dataclasses import dataclass

# User agent sent with every request.
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 6.1) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/41.0.2228.0 Safari/537.36"
)

# Timeout for each HTTP request (in seconds).
REQUEST_TIMEOUT = 30

# How many times a request is attempted before giving up.
MAX_RETRIES = 3

# Politeness rule for category discovery: concurrent requests per domain
# and the pause (in seconds) a slot is held after each request.
DISCOVERY_PARALLELISM = 2
DISCOVERY_DELAY = 5.0

# Product URLs buffered between discovery and the downloaders.
FRONTIER_CAPACITY = 1024

# Number of downloader workers draining the frontier.
DOWNLOAD_WORKERS = 4

# Pause (in seconds) a downloader takes after each product page.
PRODUCT_DELAY = 1.0

# Longest filename (without extension) written to disk.
MAX_FILENAME_LENGTH = 50

# Images whose name contains this marker are colour swatches, not photos.
SWATCH_MARKER = "swatch"

# Where images are written.
OUTPUT_DIR = "_gap_cache"

# Extension used when the payload type can't be detected.
DEFAULT_IMAGE_EXTENSION = "jpeg"


@dataclass
class FetchConfig:
    """Per-fetcher HTTP settings."""

    user_agent: str = USER_AGENT
    parallelism: int = DISCOVERY_PARALLELISM
    delay: float = DISCOVERY_DELAY
    random_delay: float = 0.0
    timeout: float = REQUEST_TIMEOUT
    max_retries: int = MAX_RETRIES
    cache: bool = True


def discovery_fetch_config() -> FetchConfig:
    """Polite, cached settings for walking category pages."""
    return FetchConfig()


def download_fetch_config(workers: int = DOWNLOAD_WORKERS) -> FetchConfig:
    """Settings for product pages and images; downloaders pace themselves."""
    return FetchConfig(parallelism=workers, delay=0.0, cache=False)
