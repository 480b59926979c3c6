"""
Product data embedded in the page's client-side framework state
(window.__INITIAL_STATE__, __NEXT_DATA__, data-state attributes, ...).
"""
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .normalizer import clean_text, extract_price, normalize_currency, resolve_url
from .page import PageHandle
from .schema import PartialProduct
from .tree import find_first, keys

logger = logging.getLogger(__name__)

Accessor = Callable[[Any], Any]


def _path(obj: Any, *parts: Any) -> Any:
    for part in parts:
        if isinstance(obj, dict):
            obj = obj.get(part)
        elif isinstance(obj, list) and isinstance(part, int):
            obj = obj[part] if -len(obj) <= part < len(obj) else None
        else:
            return None
    return obj


def _get(*parts: Any) -> Accessor:
    return lambda obj: _path(obj, *parts)


def _as_state(value: Any) -> Optional[Dict[str, Any]]:
    return value if isinstance(value, dict) else None


def _product_global(key: str) -> Accessor:
    # window.product / window.productData usually hold the product itself
    def accessor(value):
        if not isinstance(value, dict):
            return None
        return value if isinstance(value.get(key), dict) else {key: value}
    return accessor


# Tried in order; the first global that resolves to an object is used.
STATE_GLOBALS: Sequence[Tuple[str, Accessor]] = (
    ("INITIAL_STATE", _as_state),
    ("__INITIAL_STATE__", _as_state),
    ("__PRELOADED_STATE__", _as_state),
    ("productData", _product_global("productData")),
    ("product", _product_global("product")),
    ("__NEXT_DATA__", _as_state),
    ("__APOLLO_STATE__", _as_state),
)

STATE_ATTRIBUTES = ("data-state", "data-product", "data-product-data")


def _apollo_product(state: Dict[str, Any]) -> Any:
    for value in state.values():
        if isinstance(value, dict) and value.get("__typename") == "Product":
            return value
    return None


PRODUCT_LOCATORS: Sequence[Accessor] = (
    _get("product"),
    _get("data", "product"),
    _get("props", "pageProps", "product"),
    _get("productData"),
    _get("products", 0),
    _apollo_product,
)

TITLE_KEYS = ("name", "title", "productName")
DESCRIPTION_KEYS = ("description", "detail", "longDescription")
SKU_KEYS = ("sku", "id", "productId", "reference")

PRICE_ACCESSORS: Sequence[Accessor] = (
    _get("price"),
    _get("priceValue"),
    _get("finalPrice"),
    _get("pricing", "finalPrice"),
    _get("pricing", "price"),
    _get("pricing", "currentPrice"),
    _get("variants", 0, "price"),
)

CURRENCY_ACCESSORS: Sequence[Accessor] = (
    _get("currency"),
    _get("priceCurrency"),
    _get("currencyCode"),
    _get("pricing", "currency"),
    _get("price", "currency"),
    _get("price", "currencyCode"),
)

# Globals consulted by the selector reader's currency/sku/image fallbacks.
CURRENCY_GLOBALS = ("__INITIAL_STATE__", "__PRELOADED_STATE__", "productData", "product", "priceData")
SKU_GLOBALS = ("__INITIAL_STATE__", "__PRELOADED_STATE__", "productData", "product", "productInfo")
IMAGE_GLOBALS = ("__INITIAL_STATE__", "__PRELOADED_STATE__", "productData", "product", "productImages")

_CURRENCY_KEYS = keys("currency", "priceCurrency", "currencyCode")
_SKU_KEYS = keys("sku", "productId", "reference", "productReference")


def _price_value(raw: Any) -> Optional[float]:
    if isinstance(raw, dict):
        raw = raw.get("value", raw.get("amount", raw.get("current")))
    return extract_price(raw)


def first_valid(obj: Any, accessors: Sequence[Accessor], normalize: Callable[[Any], Any]) -> Any:
    for accessor in accessors:
        value = normalize(accessor(obj))
        if value is not None:
            return value
    return None


def _keyed(names: Sequence[str]) -> List[Accessor]:
    return [_get(n) for n in names]


async def read_state(page: PageHandle) -> Optional[Dict[str, Any]]:
    for name, accessor in STATE_GLOBALS:
        state = accessor(await page.global_value(name))
        if state is not None:
            logger.debug("script state found in window.%s", name)
            return state

    for attr in STATE_ATTRIBUTES:
        el = await page.query_one(f"[{attr}]")
        if el is None:
            continue
        raw = await page.attribute_of(el, attr)
        if not raw:
            continue
        try:
            state = json.loads(raw)
        except ValueError:
            logger.debug("%s attribute is not JSON", attr)
            continue
        if isinstance(state, dict):
            return state
    return None


def locate_product(state: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(state, dict):
        return None
    for locator in PRODUCT_LOCATORS:
        product = locator(state)
        if isinstance(product, dict):
            return product
    return None


def _image_entries(entries: Any, base_url: str, keys_=("url", "src")) -> List[str]:
    items = entries if isinstance(entries, list) else [entries]
    out = []
    for img in items:
        if isinstance(img, dict):
            img = next((img[k] for k in keys_ if isinstance(img.get(k), str)), None)
        url = resolve_url(img, base_url)
        if url:
            out.append(url)
    return out


def extract_from_state(state: Any, base_url: str) -> PartialProduct:
    result = PartialProduct()
    product = locate_product(state)
    if product is None:
        return result

    result.title = first_valid(product, _keyed(TITLE_KEYS), clean_text)
    result.description = first_valid(product, _keyed(DESCRIPTION_KEYS), clean_text)
    result.price = first_valid(product, PRICE_ACCESSORS, _price_value)
    result.currency = first_valid(product, CURRENCY_ACCESSORS, normalize_currency)
    result.sku = first_valid(product, _keyed(SKU_KEYS), clean_text)

    if isinstance(product.get("images"), list):
        result.images = _image_entries(product["images"], base_url)
    elif product.get("image"):
        result.images = _image_entries(product["image"], base_url)
    return result


async def extract_script_state(page: PageHandle, base_url: str) -> PartialProduct:
    state = await read_state(page)
    if state is None:
        return PartialProduct()
    return extract_from_state(state, base_url)


# ---------------------------------------------------------------------------
# Shared with the selector reader
# ---------------------------------------------------------------------------

async def read_state_globals(page: PageHandle, names: Sequence[str]) -> List[Dict[str, Any]]:
    """Every global among `names` that resolves to an object, in order."""
    out = []
    for name in names:
        value = await page.global_value(name)
        if isinstance(value, dict):
            out.append(value)
    return out


def currency_from_state(states: List[Dict[str, Any]]) -> Optional[str]:
    for state in states:
        currency = find_first(state, _CURRENCY_KEYS, max_depth=2, accept=normalize_currency)
        if currency:
            return currency
    return None


def sku_from_state(states: List[Dict[str, Any]]) -> Optional[str]:
    for state in states:
        sku = (
            find_first(state, _SKU_KEYS, max_depth=1, accept=clean_text)
            or clean_text(state.get("id"))
            or clean_text(_path(state, "product", "id"))
        )
        if sku:
            return sku
    return None


GALLERY_ACCESSORS = (
    _get("images"),
    _get("productImages"),
    _get("gallery"),
    _get("media", "images"),
    _get("media", "gallery"),
)
_GALLERY_URL_KEYS = ("url", "src", "original")


def _gallery_url(item: Any) -> Optional[str]:
    if isinstance(item, str):
        return item
    if isinstance(item, dict):
        for key in _GALLERY_URL_KEYS:
            if isinstance(item.get(key), str):
                return item[key]
    return None


def gallery_from_state(states: List[Any]) -> List[str]:
    """
    Image URLs from the first state holding a gallery at a well-known path.
    A global that is itself a list (window.productImages = [...]) counts as
    the gallery.
    """
    for state in states:
        for accessor in ([lambda s: s] if isinstance(state, list) else GALLERY_ACCESSORS):
            images = accessor(state)
            if isinstance(images, list) and images:
                urls = [u for u in map(_gallery_url, images) if u]
                if urls:
                    return urls
    return []
