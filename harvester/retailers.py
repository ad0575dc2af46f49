"""
Retailer variants: the selectors and product-URL rule each site needs.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Optional, Tuple

from .errors import ConfigurationError

ProductClassifier = Callable[[str], bool]


def contains_fragment(fragment: str) -> ProductClassifier:
    """Product URLs are those containing ``fragment``."""
    def is_product_url(url: str) -> bool:
        return fragment in url
    return is_product_url


def matches_patterns(patterns: Iterable[str]) -> ProductClassifier:
    """Product URLs are those matching any of the regex ``patterns``."""
    compiled = [re.compile(p) for p in patterns]

    def is_product_url(url: str) -> bool:
        return any(p.search(url) for p in compiled)
    return is_product_url


@dataclass(frozen=True)
class RetailerProfile:
    """Everything the discovery driver and downloaders need to know about a site."""

    name: str
    base_url: str
    image_selector: str
    is_product_url: ProductClassifier
    root_category_selector: str = ""
    product_selector: str = ""
    next_page_selector: str = ""
    product_page_template: Optional[str] = None
    default_root_pages: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def supports_discovery(self) -> bool:
        return bool(self.root_category_selector and self.product_selector)

    def product_page(self, product_id: str) -> str:
        if not self.product_page_template:
            raise ConfigurationError(f"{self.name} has no product page template")
        return self.product_page_template.format(pid=product_id)


BLOOMINGDALES = RetailerProfile(
    name="bloomingdales",
    base_url="https://www.bloomingdales.com",
    root_category_selector=".adCatIcon a",
    product_selector="li div a",
    next_page_selector=".nextArrow a",
    image_selector="picture img",
    is_product_url=contains_fragment("www.bloomingdales.com/shop/product/"),
    default_root_pages=(
        "https://www.bloomingdales.com/shop/mens?id=3864&cm_sp=NAVIGATION-_-TOP_NAV-_-MEN-n-n",
        "https://www.bloomingdales.com/shop/womens-apparel?id=2910&cm_sp=NAVIGATION-_-TOP_NAV-_-WOMEN-n-n",
    ),
)

GAP = RetailerProfile(
    name="gap",
    base_url="https://www.gap.com",
    image_selector='div a img[src*="webcontent"]',
    is_product_url=matches_patterns([r"/browse/product\.do\?pid=\d+"]),
    product_page_template="https://www.gap.com/browse/product.do?pid={pid}",
)

RETAILERS: Dict[str, RetailerProfile] = {
    profile.name: profile for profile in (BLOOMINGDALES, GAP)
}


def get_profile(name: str) -> RetailerProfile:
    try:
        return RETAILERS[name.lower()]
    except KeyError:
        known = ", ".join(sorted(RETAILERS))
        raise ConfigurationError(f"unknown retailer {name!r} (known: {known})") from None
