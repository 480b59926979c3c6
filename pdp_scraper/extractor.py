"""
Extraction coordinator: structured data, then script state, then selectors.

Each stage only fills what earlier stages left empty, and a stage is skipped
once the critical fields (title, price) are present. Nothing is kept between
calls, so pages can be extracted concurrently.
"""
import logging
from typing import Optional, Set

from .adapters.profile import SiteProfile
from .adapters.registry import pick_profile
from .normalizer import filter_images, get_largest_images
from .page import PageHandle
from .parser_jsonld import extract_structured_data
from .parser_selectors import extract_from_selectors
from .parser_state import extract_script_state
from .schema import SCALAR_FIELDS, PartialProduct, Product, Provenance

logger = logging.getLogger(__name__)

CRITICAL_FIELDS = ("title", "price")


def merge(record: Product, partial: PartialProduct) -> Set[str]:
    """
    Copy into `record` only the fields it does not have yet. Returns the
    names of the fields that were filled.
    """
    filled = set()
    for name in SCALAR_FIELDS:
        value = getattr(partial, name)
        if value is not None and getattr(record, name) is None:
            setattr(record, name, value)
            filled.add(name)
    images = filter_images(partial.images)
    if images and not record.images:
        record.images = images
        filled.add("images")
    return filled


def missing_critical(record: Product) -> bool:
    return any(getattr(record, name) is None for name in CRITICAL_FIELDS)


class _Provenance:
    """First stage to supply a critical field; else first stage to supply anything."""

    def __init__(self):
        self.first_contributor: Optional[Provenance] = None

    def record(self, product: Product, stage: Provenance, filled: Set[str]):
        if not filled:
            return
        if self.first_contributor is None:
            self.first_contributor = stage
        if product.provenance is Provenance.NONE and filled.intersection(CRITICAL_FIELDS):
            product.provenance = stage

    def settle(self, product: Product):
        if product.provenance is Provenance.NONE and self.first_contributor is not None:
            product.provenance = self.first_contributor


async def extract_product(page: PageHandle, url: str = None, profile: SiteProfile = None) -> Product:
    url = url or page.current_url()
    product = Product.for_url(url)
    profile = profile or pick_profile(product.domain)
    provenance = _Provenance()

    # 1. JSON-LD Product block
    partial, block = await extract_structured_data(page, url)
    if block is not None:
        product.structured_data_raw = block
        merge(product, partial)
        product.provenance = Provenance.STRUCTURED_DATA

    # 2. framework state
    if missing_critical(product):
        filled = merge(product, await extract_script_state(page, url))
        provenance.record(product, Provenance.SCRIPT_STATE, filled)

    # 3. DOM selectors
    if missing_critical(product) or not product.images:
        filled = merge(product, await extract_from_selectors(page, profile, url))
        provenance.record(product, Provenance.SELECTORS, filled)

    provenance.settle(product)

    if product.images:
        product.images = filter_images(get_largest_images(product.images))

    logger.info(
        "extracted %s [%s/%s] title=%r price=%s %s sku=%s images=%d",
        url, profile.name, product.provenance.value, product.title,
        product.price, product.currency or "", product.sku, len(product.images),
    )
    return product
