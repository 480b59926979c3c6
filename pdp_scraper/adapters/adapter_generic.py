from .profile import SiteProfile, table

PROFILE = SiteProfile(
    name="generic",
    domains=(),
    selectors=table(
        title=["h1", ".product-title", "[data-testid='product-title']"],
        description=[".product-description", ".description", "[data-testid='product-description']"],
        price=[".price", ".product-price", "[data-testid='price']"],
        currency=["[data-currency]", "[data-currency-code]"],
        sku=["[data-sku]", "[data-product-id]", ".sku"],
        images=[".product-image img", ".product-images img", "img[data-product-image]"],
    ),
)
