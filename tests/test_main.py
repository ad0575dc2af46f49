import pytest

from main import _ensure_command_prefix, build_parser, main


def test_crawl_is_the_default_command():
    args = build_parser().parse_args(_ensure_command_prefix(["bloomingdales", "--workers", "2"]))
    assert args.command == "crawl"
    assert args.retailers == ["bloomingdales"]
    assert args.workers == 2


def test_no_arguments_crawls_every_retailer():
    args = build_parser().parse_args(_ensure_command_prefix([]))
    assert args.command == "crawl"
    assert args.retailers == []
    assert args.root_pages is None


def test_rip_takes_product_ids():
    args = build_parser().parse_args(_ensure_command_prefix(["rip", "gap", "111", "222"]))
    assert args.retailer == "gap"
    assert args.product_ids == ["111", "222"]


def test_root_page_requires_a_single_retailer():
    with pytest.raises(SystemExit) as excinfo:
        main(["crawl", "bloomingdales", "gap", "--root-page", "https://www.bloomingdales.com/shop/mens"])
    assert excinfo.value.code == 2

    with pytest.raises(SystemExit):
        main(["--root-page", "https://www.bloomingdales.com/shop/mens"])
