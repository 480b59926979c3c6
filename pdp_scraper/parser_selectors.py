"""
Last-resort extraction straight from the rendered DOM, driven by the site
profile's selector table, with currency/SKU fallback chains and the
per-site image recall passes.
"""
import logging
import re
from types import MappingProxyType
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlsplit

from .adapters.profile import SiteProfile
from .errors import FatalPageError
from .normalizer import (clean_text, currency_from_text, dedupe, extract_price,
                         filter_images, normalize_currency, resolve_url)
from .page import PageHandle
from .parser_state import (IMAGE_GLOBALS, CURRENCY_GLOBALS, SKU_GLOBALS, currency_from_state,
                           gallery_from_state, read_state_globals, sku_from_state)
from .schema import PartialProduct
from .tree import collect_image_urls

logger = logging.getLogger(__name__)

COUNTRY_CURRENCY = MappingProxyType({
    "us": "USD", "uk": "GBP", "gb": "GBP", "cy": "EUR", "de": "EUR",
    "fr": "EUR", "es": "EUR", "it": "EUR", "nl": "EUR", "be": "EUR",
    "at": "EUR", "pt": "EUR", "ie": "EUR", "fi": "EUR", "pl": "PLN",
    "cz": "CZK", "se": "SEK", "dk": "DKK", "no": "NOK", "ch": "CHF",
    "jp": "JPY", "cn": "CNY", "au": "AUD", "ca": "CAD", "mx": "MXN",
    "br": "BRL", "ru": "RUB", "ua": "UAH", "kz": "KZT", "tr": "TRY",
    "ae": "AED", "sa": "SAR",
})

CURRENCY_ATTRIBUTES = ("data-currency", "currency", "data-currency-code")
CURRENCY_META = (
    "meta[property='product:price:currency']",
    "meta[property='og:price:currency']",
    "meta[itemprop='priceCurrency']",
    "meta[name='currency']",
)

SKU_ATTRIBUTES = ("data-sku", "data-product-id", "data-product-reference", "data-reference", "id", "data-id")
SKU_META = (
    "meta[property='product:sku']",
    "meta[name='product:sku']",
    "meta[property='product:id']",
    "meta[property='product:retailer_item_id']",
)
SKU_ATTRIBUTE_PROBE = ("data-product-id", "data-sku", "data-product-reference", "data-product-code")
SKU_URL_PATTERNS = (
    re.compile(r"-p(\d{4,})(?:\.html?)?$", re.I),    # shirt-p08975071.html
    re.compile(r"^p(\d{4,})(?:\.html?)?$", re.I),    # p08975071
    re.compile(r"^[a-z]?(\d{6,})(?:\.html?)?$", re.I),  # 123456, a123456.html
    re.compile(r"-(\d{6,})(?:\.html?)?$"),           # blue-shirt-123456
)

IMAGE_ATTRIBUTES = ("src", "data-src", "data-lazy-src", "data-original", "data-srcset", "srcset")
SOURCE_ATTRIBUTES = ("srcset", "data-srcset", "src")
LAZY_SCROLL_STEPS = (0.25, 0.5, 0.75, 1.0)
LAZY_SETTLE_MS = 400
LAZY_WAIT_MS = 1500
STATE_IMAGE_DEPTH = 6
PICTURE_DEPTH = 2


async def select_text(page: PageHandle, selectors: Sequence[str]) -> Tuple[Optional[str], Optional[str]]:
    """Text of the first selector that yields any; returns (text, selector)."""
    for sel in selectors:
        el = await page.query_one(sel)
        if el is None:
            continue
        text = clean_text(await page.text_of(el))
        if text:
            return text, sel
    return None, None


async def _meta_content(page: PageHandle, selectors: Sequence[str]) -> Optional[str]:
    for sel in selectors:
        el = await page.query_one(sel)
        if el is None:
            continue
        content = clean_text(await page.attribute_of(el, "content"))
        if content:
            return content
    return None


# ---------------------------------------------------------------------------
# Currency
# ---------------------------------------------------------------------------

async def _currency_from_selectors(page: PageHandle, selectors: Sequence[str]) -> Optional[str]:
    for sel in selectors:
        el = await page.query_one(sel)
        if el is None:
            continue
        for attr in CURRENCY_ATTRIBUTES:
            currency = normalize_currency(await page.attribute_of(el, attr))
            if currency:
                return currency
        currency = currency_from_text(await page.text_of(el))
        if currency:
            return currency
    return None


def currency_from_locale(url: str, overrides=MappingProxyType({})) -> Optional[str]:
    """/us/en/... -> USD. A hint only: wrong for multi-currency countries."""
    try:
        segments = [s for s in urlsplit(url).path.split("/") if s]
    except ValueError:
        return None
    if not segments:
        return None
    first = segments[0].lower()
    # "en-gb" style locales carry the country last
    for code in (first, first.rpartition("-")[2], first.rpartition("_")[2]):
        currency = overrides.get(code) or COUNTRY_CURRENCY.get(code)
        if currency:
            return currency
    return None


async def _currency(page: PageHandle, profile: SiteProfile, base_url: str) -> Optional[str]:
    currency = await _currency_from_selectors(page, profile.selectors_for("currency"))
    if currency is None:
        currency = normalize_currency(await _meta_content(page, CURRENCY_META))
    if currency is None:
        currency = currency_from_locale(base_url, profile.country_currency)
    if currency is None:
        currency = currency_from_state(await read_state_globals(page, CURRENCY_GLOBALS))
    return currency


# ---------------------------------------------------------------------------
# SKU
# ---------------------------------------------------------------------------

async def _sku_from_selectors(page: PageHandle, selectors: Sequence[str]) -> Optional[str]:
    for sel in selectors:
        el = await page.query_one(sel)
        if el is None:
            continue
        for attr in SKU_ATTRIBUTES:
            sku = clean_text(await page.attribute_of(el, attr))
            if sku:
                return sku
        sku = clean_text(await page.text_of(el))
        if sku:
            return sku
    return None


def sku_from_url(url: str) -> Optional[str]:
    try:
        segments = [s for s in urlsplit(url).path.split("/") if s]
    except ValueError:
        return None
    for segment in segments:
        for pattern in SKU_URL_PATTERNS:
            m = pattern.search(segment)
            if m:
                return m.group(1)
    return None


async def _sku_from_attributes(page: PageHandle) -> Optional[str]:
    el = await page.query_one(", ".join(f"[{a}]" for a in SKU_ATTRIBUTE_PROBE))
    if el is None:
        return None
    for attr in SKU_ATTRIBUTE_PROBE:
        sku = clean_text(await page.attribute_of(el, attr))
        if sku:
            return sku
    return None


async def _sku(page: PageHandle, profile: SiteProfile, base_url: str) -> Optional[str]:
    sku = await _sku_from_selectors(page, profile.selectors_for("sku"))
    if sku is None:
        sku = sku_from_url(base_url)
    if sku is None:
        sku = await _meta_content(page, SKU_META)
    if sku is None:
        sku = sku_from_state(await read_state_globals(page, SKU_GLOBALS))
    if sku is None:
        sku = await _sku_from_attributes(page)
    return sku


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

def _candidate(value: Optional[str], srcset: bool = False) -> Optional[str]:
    if not value or not value.strip():
        return None
    value = value.strip()
    if srcset:
        value = value.split(",")[0].strip().split(" ")[0]
    if not value or value.startswith("data:"):
        return None
    return value


async def _first_attribute(page: PageHandle, el, attributes: Sequence[str]) -> Optional[str]:
    for attr in attributes:
        value = _candidate(await page.attribute_of(el, attr), srcset=attr.endswith("srcset"))
        if value:
            return value
    return None


async def element_image(page: PageHandle, el) -> Optional[str]:
    tag = (await page.tag_of(el) or "").lower()
    if tag == "source":
        return await _first_attribute(page, el, SOURCE_ATTRIBUTES)

    src = await _first_attribute(page, el, IMAGE_ATTRIBUTES)
    if src or tag != "img":
        return src

    # bare <img> inside <picture>: the first <source> carries the URL. Parsers
    # that treat <source> as a container nest the <img> one level deeper.
    picture = await page.parent_of(el)
    for _ in range(PICTURE_DEPTH):
        if picture is None:
            return None
        if (await page.tag_of(picture) or "").lower() == "picture":
            break
        picture = await page.parent_of(picture)
    else:
        return None
    source = await page.query_within(picture, "source")
    if source is None:
        return None
    return await _first_attribute(page, source, SOURCE_ATTRIBUTES)


async def select_images(page: PageHandle, selectors: Sequence[str], base_url: str) -> List[str]:
    """Union over every selector, galleries are often split across containers."""
    found = []
    for sel in selectors:
        for el in await page.query_all(sel):
            url = resolve_url(await element_image(page, el), base_url)
            if url:
                found.append(url)
    return filter_images(found)


def _profile_filter(profile: SiteProfile, urls: List[str]) -> List[str]:
    if profile.image_filter is None:
        return urls
    try:
        return [u for u in urls if profile.image_filter(u)]
    except Exception:
        logger.warning("image filter for %s failed, keeping unfiltered images", profile.name, exc_info=True)
        return urls


async def _state_gallery(page: PageHandle, base_url: str) -> List[str]:
    states = []
    for name in IMAGE_GLOBALS:
        value = await page.global_value(name)
        if isinstance(value, (dict, list)):
            states.append(value)
    return filter_images(resolve_url(u, base_url) for u in gallery_from_state(states))


async def _state_images(page: PageHandle, base_url: str) -> List[str]:
    urls = []
    for state in await read_state_globals(page, IMAGE_GLOBALS + ("__NEXT_DATA__",)):
        urls.extend(resolve_url(u, base_url) for u in collect_image_urls(state, STATE_IMAGE_DEPTH))
    return filter_images(u for u in urls if u)


async def _lazy_images(page: PageHandle, hosts: Sequence[str], base_url: str) -> List[str]:
    for fraction in LAZY_SCROLL_STEPS:
        await page.scroll_to(fraction, LAZY_SETTLE_MS)
    await page.wait_for(", ".join(f"img[src*='{h}']" for h in hosts), LAZY_WAIT_MS)
    found = []
    for el in await page.query_all("img"):
        url = resolve_url(await element_image(page, el), base_url)
        if url and (urlsplit(url).hostname or "").lower() in hosts:
            found.append(url)
    return filter_images(found)


async def _recall_pass(name: str, profile: SiteProfile, fn, *args) -> List[str]:
    """Run one image recall pass; its failure must not take the page down."""
    try:
        return _profile_filter(profile, await fn(*args))
    except FatalPageError:
        raise
    except Exception:
        logger.warning("%s pass for %s failed", name, profile.name, exc_info=True)
        return []


async def _images(page: PageHandle, profile: SiteProfile, base_url: str) -> List[str]:
    images = _profile_filter(profile, await select_images(page, profile.selectors_for("images"), base_url))

    if not images:
        images = await _recall_pass("state gallery", profile, _state_gallery, page, base_url)

    if len(images) < profile.min_gallery_images and profile.search_state_images:
        images = dedupe(images + await _recall_pass("state image", profile, _state_images, page, base_url))

    if len(images) < profile.min_gallery_images and profile.lazy_image_hosts:
        images = dedupe(images + await _recall_pass(
            "lazy-load", profile, _lazy_images, page, profile.lazy_image_hosts, base_url))
    return images


async def extract_from_selectors(page: PageHandle, profile: SiteProfile, base_url: str) -> PartialProduct:
    result = PartialProduct()
    result.title, _ = await select_text(page, profile.selectors_for("title"))
    result.description, _ = await select_text(page, profile.selectors_for("description"))

    price_text, sel = await select_text(page, profile.selectors_for("price"))
    if price_text:
        result.price = extract_price(price_text)
        result.currency = currency_from_text(price_text)
        logger.debug("price %r from %s", price_text, sel)

    if result.currency is None:
        result.currency = await _currency(page, profile, base_url)
    result.sku = await _sku(page, profile, base_url)
    result.images = await _images(page, profile, base_url)
    return result
