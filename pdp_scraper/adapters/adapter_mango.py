# adapter_mango.py
import re
from urllib.parse import urlsplit

from .profile import SiteProfile, table

IMAGE_HOSTS = ("st.mngbcn.com", "shop.mango.com")
_IMAGE_PATH = re.compile(r"/rcs/pics/", re.I)
_IMAGE_EXT = (".jpg", ".jpeg", ".webp")


def is_product_image(url: str) -> bool:
    parts = urlsplit(url)
    host = (parts.hostname or "").lower()
    path = parts.path.lower()
    return host in IMAGE_HOSTS and bool(_IMAGE_PATH.search(path)) and path.endswith(_IMAGE_EXT)


PROFILE = SiteProfile(
    name="mango",
    domains=("shop.mango.com", "mango.com"),
    selectors=table(
        title=["h1.product-title", ".product-name h1", "h1"],
        description=[".product-description", ".product-info-description", ".description"],
        price=[".product-price", ".price-current", "[data-testid='price']"],
        sku=["[data-product-id]", "[data-sku]", ".product-reference"],
        images=[".product-images img", ".product-gallery img", ".product-image img", ".product-images picture source"],
    ),
    image_filter=is_product_image,
    lazy_image_hosts=IMAGE_HOSTS,
    min_gallery_images=2,
)
