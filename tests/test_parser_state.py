import asyncio
import json
from html import escape

import pytest

from pdp_scraper.page import SoupPage
from pdp_scraper.parser_state import (currency_from_state, extract_from_state, extract_script_state,
                                      locate_product, read_state, sku_from_state)

URL = "https://shop.example.com/item/42"


def _page(body="", **globals_):
    return SoupPage(f"<html><body>{body}</body></html>", URL, globals=globals_)


@pytest.mark.parametrize("state", [
    {"product": {"name": "A"}},
    {"data": {"product": {"name": "A"}}},
    {"props": {"pageProps": {"product": {"name": "A"}}}},
    {"productData": {"name": "A"}},
    {"products": [{"name": "A"}, {"name": "B"}]},
    {"ROOT_QUERY": {}, "Product:1": {"__typename": "Product", "name": "A"}},
])
def test_locate_product_paths(state):
    assert locate_product(state)["name"] == "A"


def test_locate_product_order():
    state = {"productData": {"name": "late"}, "product": {"name": "early"}}
    assert locate_product(state)["name"] == "early"
    assert locate_product({"products": []}) is None
    assert locate_product({"nothing": 1}) is None


def test_field_aliases_in_priority_order():
    state = {"product": {
        "title": "Shirt", "productName": "ignored",
        "longDescription": "Long",
        "priceValue": "19.90", "finalPrice": 5,
        "currencyCode": "gbp",
        "productId": 991,
        "images": ["/a.jpg", {"url": "https://cdn.x.com/b.jpg"}, {"src": "c.jpg"}, {"alt": "x"}],
    }}
    out = extract_from_state(state, URL)
    assert out.title == "Shirt"
    assert out.description == "Long"
    assert out.price == 19.9
    assert out.currency == "GBP"
    assert out.sku == "991"
    assert out.images == [
        "https://shop.example.com/a.jpg",
        "https://cdn.x.com/b.jpg",
        "https://shop.example.com/item/c.jpg",
    ]


@pytest.mark.parametrize("product,price", [
    ({"pricing": {"finalPrice": "12.50", "price": 20}}, 12.5),
    ({"pricing": {"currentPrice": 7}}, 7.0),
    ({"variants": [{"price": "9.99"}]}, 9.99),
    ({"price": {"value": 31, "currency": "EUR"}}, 31.0),
    ({"price": "n/a", "priceValue": "15"}, 15.0),
    ({"name": "no price"}, None),
])
def test_price_fallbacks(product, price):
    assert extract_from_state({"product": product}, URL).price == price


def test_singular_image_field():
    out = extract_from_state({"product": {"image": {"url": "https://x.com/1.jpg"}}}, URL)
    assert out.images == ["https://x.com/1.jpg"]
    out = extract_from_state({"product": {"image": "https://x.com/2.jpg"}}, URL)
    assert out.images == ["https://x.com/2.jpg"]


def test_first_resolving_global_wins():
    page = _page(
        __PRELOADED_STATE__={"product": {"name": "preloaded"}},
        INITIAL_STATE={"product": {"name": "initial"}},
    )
    out = asyncio.run(extract_script_state(page, URL))
    assert out.title == "initial"


def test_bare_product_global_is_wrapped():
    page = _page(product={"name": "bare", "price": 3})
    out = asyncio.run(extract_script_state(page, URL))
    assert (out.title, out.price) == ("bare", 3.0)


def test_next_data_script_tag():
    data = {"props": {"pageProps": {"product": {"name": "Next"}}}}
    page = _page(f'<script id="__NEXT_DATA__" type="application/json">{json.dumps(data)}</script>')
    assert asyncio.run(extract_script_state(page, URL)).title == "Next"


def test_data_attribute_fallback():
    payload = escape(json.dumps({"product": {"name": "Attr"}}))
    page = _page(f'<div data-product="{payload}"></div>')
    assert asyncio.run(extract_script_state(page, URL)).title == "Attr"


def test_malformed_data_attribute_is_absence():
    page = _page('<div data-state="{oops"></div>')
    assert asyncio.run(read_state(page)) is None
    assert asyncio.run(extract_script_state(page, URL)).is_empty()


def test_state_helpers():
    states = [{"user": {"name": "x"}}, {"price": {"currency": "€"}, "productId": "P-1"}]
    assert currency_from_state(states) == "EUR"
    assert sku_from_state(states) == "P-1"
    assert sku_from_state([{"product": {"id": 77}}]) == "77"
    assert currency_from_state([{}]) is None
