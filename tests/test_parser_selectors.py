import asyncio
import logging

from pdp_scraper.adapters import adapter_generic, adapter_zara
from pdp_scraper.adapters.profile import SiteProfile, table
from pdp_scraper.page import SoupPage
from pdp_scraper.parser_selectors import (currency_from_locale, extract_from_selectors,
                                          select_images, sku_from_url)

GENERIC = adapter_generic.PROFILE


def _extract(html, url, profile=GENERIC, **globals_):
    page = SoupPage(f"<html><head></head><body>{html}</body></html>", url, globals=globals_)
    return asyncio.run(extract_from_selectors(page, profile, url))


def test_first_selector_with_text_wins():
    out = _extract(
        '<h1>   </h1><div class="product-title">  Blue Shirt  </div>'
        '<div class="description">Cotton</div>',
        "https://shop.example.com/products/blue-shirt",
    )
    assert out.title == "Blue Shirt"
    assert out.description == "Cotton"


def test_price_and_currency_from_same_element():
    out = _extract('<span class="price">29,95 €</span>', "https://shop.example.com/x")
    assert out.price == 29.95
    assert out.currency == "EUR"


def test_currency_attribute_then_meta_then_locale():
    out = _extract('<span class="price">29.95</span><b data-currency="gbp"></b>', "https://shop.example.com/x")
    assert out.currency == "GBP"

    html = '<meta property="product:price:currency" content="chf"><span class="price">10</span>'
    page = SoupPage(f"<html><head>{html}</head><body></body></html>", "https://shop.example.com/de/x")
    out = asyncio.run(extract_from_selectors(page, GENERIC, "https://shop.example.com/de/x"))
    assert out.currency == "CHF"

    out = _extract('<span class="price">10</span>', "https://shop.example.com/de/x")
    assert out.currency == "EUR"


def test_currency_from_state_globals_last():
    out = _extract('<span class="price">10</span>', "https://shop.example.com/x",
                   __INITIAL_STATE__={"product": {"currency": "SEK"}})
    assert out.currency == "SEK"


def test_currency_from_locale():
    assert currency_from_locale("https://a.com/us/en/x") == "USD"
    assert currency_from_locale("https://a.com/en-gb/x") == "GBP"
    assert currency_from_locale("https://a.com/products/x") is None
    assert currency_from_locale("https://a.com/ba/en/x", {"ba": "BAM"}) == "BAM"
    assert currency_from_locale("https://a.com/") is None


def test_sku_from_url():
    assert sku_from_url("https://www.zara.com/us/en/shirt-p08975071.html") == "08975071"
    assert sku_from_url("https://a.com/p/123456") == "123456"
    assert sku_from_url("https://a.com/shop/blue-shirt-7654321") == "7654321"
    assert sku_from_url("https://a.com/2024/blue-shirt") is None


def test_sku_chain():
    out = _extract('<div class="sku" data-id="X-1">ignored</div>', "https://a.com/x")
    assert out.sku == "X-1"
    out = _extract("", "https://a.com/item/4567890")
    assert out.sku == "4567890"
    page = SoupPage('<html><head><meta property="product:sku" content="M-9"></head></html>', "https://a.com/x")
    assert asyncio.run(extract_from_selectors(page, GENERIC, "https://a.com/x")).sku == "M-9"
    out = _extract('<section data-product-code="C-3"></section>', "https://a.com/x")
    assert out.sku == "C-3"


def test_images_union_and_source_rules():
    html = """
    <div class="product-image">
      <img src="data:image/gif;base64,R0lGOD" data-src="/img/a.jpg">
      <img data-srcset="/img/b.jpg 1x, /img/b2.jpg 2x">
    </div>
    <div class="product-images">
      <picture><source srcset="/img/c-800.jpg 800w, /img/c-400.jpg 400w"><img></picture>
      <img src="/img/a.jpg">
      <img src="/img/logo.svg">
      <img src="/img/placeholder.png">
    </div>
    <img data-product-image src="https://cdn.example.com/d.jpg">
    """
    out = _extract(html, "https://shop.example.com/p/1")
    assert out.images == [
        "https://shop.example.com/img/a.jpg",
        "https://shop.example.com/img/b.jpg",
        "https://shop.example.com/img/c-800.jpg",
        "https://cdn.example.com/d.jpg",
    ]


def test_source_element_prefers_srcset():
    html = '<picture class="g"><source src="/s.jpg" srcset="/big.jpg 2x"></picture>'
    page = SoupPage(html, "https://a.com/")
    assert asyncio.run(select_images(page, [".g source"], "https://a.com/")) == ["https://a.com/big.jpg"]


def test_domain_filter_is_scoped_to_its_domain():
    html = '<div class="product-image"><img src="https://cdn.example.com/img/shirt.jpg"></div>'
    zara = _extract(html, "https://www.zara.com/us/en/shirt-p1234567.html", adapter_zara.PROFILE)
    generic = _extract(html, "https://shop.example.com/shirt", GENERIC)
    assert zara.images == []
    assert generic.images == ["https://cdn.example.com/img/shirt.jpg"]


def test_zara_state_image_search():
    state = {"product": {"detail": {"xmedia": [
        {"url": "https://static.zara.net/photos///2024/1.jpg"},
        {"url": "https://static.zara.net/stdstatic/icon.png"},
    ]}}}
    out = _extract("", "https://www.zara.com/us/en/x-p1234567.html", adapter_zara.PROFILE,
                   __INITIAL_STATE__=state)
    assert out.images == ["https://static.zara.net/photos///2024/1.jpg"]


def test_broken_override_does_not_break_extraction(caplog):
    def explode(url):
        raise RuntimeError("bad filter")

    broken = SiteProfile(
        name="broken",
        domains=("broken.test",),
        selectors=table(images=[".g img"]),
        image_filter=explode,
    )
    html = '<div class="g"><img src="https://broken.test/a.jpg"></div>'
    with caplog.at_level(logging.WARNING):
        out = _extract(html, "https://broken.test/x", broken)
    assert out.images == ["https://broken.test/a.jpg"]
    assert "image filter for broken failed" in caplog.text

    # the generic path is unaffected
    assert _extract('<div class="product-image"><img src="https://broken.test/a.jpg"></div>',
                    "https://other.test/x").images == ["https://broken.test/a.jpg"]


def test_bare_img_in_picture_uses_first_source():
    out = _extract(
        '<div class="product-images"><picture><source srcset="/img/c.jpg 1x"><img></picture></div>',
        "https://shop.example.com/p/1",
    )
    assert out.images == ["https://shop.example.com/img/c.jpg"]


def test_state_gallery_fills_empty_dom_gallery_on_any_site():
    out = _extract(
        '<h1>Tee</h1><span class="price">$5</span>',
        "https://shop.example.com/tee",
        productImages={"images": ["https://shop.example.com/img/a.jpg"]},
        __PRELOADED_STATE__={"gallery": [{"src": "/img/b.jpg"}, {"url": "/img/b.svg"}]},
    )
    assert out.images == ["https://shop.example.com/img/b.jpg"]

    out = _extract(
        "", "https://shop.example.com/tee",
        productImages=[{"url": "/img/a.jpg"}, "/img/c.jpg"],
        product={"media": {"images": "not a list"}},
    )
    assert out.images == ["https://shop.example.com/img/a.jpg", "https://shop.example.com/img/c.jpg"]


def test_state_gallery_skipped_when_dom_has_images():
    out = _extract(
        '<div class="product-image"><img src="/img/dom.jpg"></div>',
        "https://shop.example.com/tee",
        __INITIAL_STATE__={"images": ["/img/state.jpg"]},
    )
    assert out.images == ["https://shop.example.com/img/dom.jpg"]


class ScrollingPage(SoupPage):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.scrolls = []
        self.waited = []

    async def scroll_to(self, fraction, settle_ms=0):
        self.scrolls.append(fraction)

    async def wait_for(self, selector, timeout_ms):
        self.waited.append(selector)
        return await super().wait_for(selector, timeout_ms)


def test_lazy_load_pass_scrolls_then_keeps_only_cdn_hosts():
    lazy = SiteProfile(
        name="lazy",
        domains=("lazy.test",),
        selectors=table(images=[".gallery img"]),
        lazy_image_hosts=("cdn.lazy.test",),
        min_gallery_images=2,
    )
    html = (
        '<div class="gallery"><img src="https://cdn.lazy.test/a.jpg"></div>'
        '<footer><img src="https://cdn.lazy.test/b.jpg"><img src="https://ads.other.test/c.jpg"></footer>'
    )
    url = "https://www.lazy.test/p/1"
    page = ScrollingPage(f"<html><body>{html}</body></html>", url)
    out = asyncio.run(extract_from_selectors(page, lazy, url))
    assert out.images == ["https://cdn.lazy.test/a.jpg", "https://cdn.lazy.test/b.jpg"]
    assert page.scrolls == [0.25, 0.5, 0.75, 1.0]
    assert page.waited == ["img[src*='cdn.lazy.test']"]


def test_lazy_load_pass_not_run_for_full_gallery():
    lazy = SiteProfile(
        name="lazy",
        domains=("lazy.test",),
        selectors=table(images=[".gallery img"]),
        lazy_image_hosts=("cdn.lazy.test",),
    )
    url = "https://www.lazy.test/p/1"
    page = ScrollingPage('<div class="gallery"><img src="https://cdn.lazy.test/a.jpg"></div>', url)
    asyncio.run(extract_from_selectors(page, lazy, url))
    assert page.scrolls == []
