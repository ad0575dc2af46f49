import pytest

from harvester.errors import ConfigurationError
from harvester.retailers import (
    BLOOMINGDALES,
    GAP,
    contains_fragment,
    get_profile,
    matches_patterns,
)


def test_bloomingdales_product_rule():
    assert BLOOMINGDALES.is_product_url("https://www.bloomingdales.com/shop/product/shirt?ID=1")
    assert not BLOOMINGDALES.is_product_url("https://www.bloomingdales.com/shop/mens?id=3864")
    assert BLOOMINGDALES.supports_discovery
    assert len(BLOOMINGDALES.default_root_pages) == 2


def test_gap_builds_product_pages_from_ids():
    assert GAP.product_page("123456") == "https://www.gap.com/browse/product.do?pid=123456"
    assert GAP.is_product_url("https://www.gap.com/browse/product.do?pid=123456")
    assert not GAP.supports_discovery


def test_classifiers():
    assert contains_fragment("/p/")("https://x.test/p/1")
    assert not contains_fragment("/p/")("https://x.test/c/1")
    rule = matches_patterns([r"/p/[0-9]{3,}", r"iid="])
    assert rule("https://x.test/p/12345")
    assert rule("https://x.test/item?iid=9")
    assert not rule("https://x.test/p/12")


def test_get_profile_is_case_insensitive_and_rejects_unknown():
    assert get_profile("Bloomingdales") is BLOOMINGDALES
    with pytest.raises(ConfigurationError):
        get_profile("nowhere")


def test_profile_without_template_cannot_rip():
    with pytest.raises(ConfigurationError):
        BLOOMINGDALES.product_page("1")
