import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from .normalizer import clean_text, extract_price, normalize_currency, resolve_url
from .page import PageHandle
from .schema import PartialProduct

logger = logging.getLogger(__name__)

JSONLD_SELECTOR = 'script[type="application/ld+json"]'


def _is_product(node: Any) -> bool:
    if not isinstance(node, dict):
        return False
    t = node.get("@type")
    return t == "Product" or (isinstance(t, list) and "Product" in t)


def find_product_block(blocks: List[Any]) -> Optional[Dict[str, Any]]:
    """
    First block typed Product; failing that, the first Product one level
    down inside any block's @graph.
    """
    for block in blocks:
        if _is_product(block):
            return block
    for block in blocks:
        graph = block.get("@graph") if isinstance(block, dict) else None
        if isinstance(graph, list):
            for node in graph:
                if _is_product(node):
                    return node
    return None


async def read_jsonld_blocks(page: PageHandle) -> List[Any]:
    blocks: List[Any] = []
    for script in await page.query_all(JSONLD_SELECTOR):
        text = await page.text_of(script)
        if not text or not text.strip():
            continue
        try:
            data = json.loads(text)
        except ValueError as e:
            logger.debug("skipping malformed JSON-LD block: %s", e)
            continue
        # Some sites wrap several blocks in a top-level array
        if isinstance(data, list):
            blocks.extend(data)
        else:
            blocks.append(data)
    return blocks


def _image_urls(image: Any, base_url: str) -> List[str]:
    items = image if isinstance(image, list) else [image]
    out = []
    for img in items:
        if isinstance(img, dict):
            img = img.get("url") or img.get("contentUrl")
        url = resolve_url(img, base_url)
        if url:
            out.append(url)
    return out


def extract_from_jsonld(block: Dict[str, Any], base_url: str) -> PartialProduct:
    result = PartialProduct()
    if not isinstance(block, dict):
        return result

    result.title = clean_text(block.get("name"))
    result.description = clean_text(block.get("description"))
    result.sku = clean_text(block.get("sku")) or clean_text(block.get("productID"))

    offers = block.get("offers")
    if isinstance(offers, dict):
        offers = [offers]
    if isinstance(offers, list) and offers and isinstance(offers[0], dict):
        offer = offers[0]
        result.price = extract_price(offer.get("price"))
        result.currency = normalize_currency(offer.get("priceCurrency"))

    if block.get("image"):
        result.images = _image_urls(block["image"], base_url)
    return result


async def extract_structured_data(page: PageHandle, base_url: str) -> Tuple[PartialProduct, Optional[Dict[str, Any]]]:
    """
    Returns the fields of the page's Product block and the block itself, or
    an empty partial and None when the page carries no Product markup.
    """
    block = find_product_block(await read_jsonld_blocks(page))
    if block is None:
        return PartialProduct(), None
    return extract_from_jsonld(block, base_url), block
