# adapter_zara.py
import re
from types import MappingProxyType
from urllib.parse import urlsplit

from .profile import SiteProfile, table

IMAGE_HOSTS = ("static.zara.net",)
_IMAGE_PATH = re.compile(r"^/(?:photos|assets/public)/", re.I)
_IMAGE_EXT = (".jpg", ".jpeg", ".png", ".webp")


def is_product_image(url: str) -> bool:
    """Zara product shots live under /photos/ (or /assets/public/) on static.zara.net."""
    parts = urlsplit(url)
    host = (parts.hostname or "").lower()
    path = parts.path.lower()
    return host in IMAGE_HOSTS and bool(_IMAGE_PATH.match(path)) and path.endswith(_IMAGE_EXT)


PROFILE = SiteProfile(
    name="zara",
    domains=("zara.com",),
    selectors=table(
        title=["h1.product-detail-info__header-name", "[data-testid='product-title']", "h1"],
        description=[".product-detail-description", "[data-testid='product-description']", ".product-description"],
        price=[".product-detail-info__price", "[data-testid='price']", ".price", ".money-amount__main"],
        currency=[".product-detail-info__price", "[data-testid='price']", ".price", ".money-amount__main", "[data-currency]"],
        sku=["[data-product-id]", "[data-sku]", ".product-reference", "[data-product-reference]"],
        images=[
            "img.product-detail-images__image",
            ".product-detail-images img",
            ".product-detail-images picture source",
            "[data-testid='product-image'] img",
            ".product-image img",
            "img[src*='product']",
            ".media-image img",
            "picture img",
        ],
    ),
    image_filter=is_product_image,
    search_state_images=True,
    lazy_image_hosts=IMAGE_HOSTS,
    # locales whose currency the shared country table does not cover
    country_currency=MappingProxyType({"ba": "BAM", "rs": "RSD", "ro": "RON", "hu": "HUF", "bg": "BGN"}),
    min_gallery_images=3,
)
