import pytest

from pdp_scraper.adapters import adapter_mango, adapter_zara
from pdp_scraper.adapters.profile import table
from pdp_scraper.adapters.registry import GENERIC, pick_profile


@pytest.mark.parametrize("domain,name", [
    ("zara.com", "zara"),
    ("m.zara.com", "zara"),
    ("zara.cn", "zara"),
    ("shop.mango.com", "mango"),
    ("mango.com", "mango"),
    ("example.com", "generic"),
    ("notzara.com", "generic"),
    (None, "generic"),
])
def test_pick_profile(domain, name):
    assert pick_profile(domain).name == name


def test_generic_table_covers_scalar_fields():
    for field in ("title", "description", "price", "sku", "images"):
        assert GENERIC.selectors_for(field)
    assert GENERIC.selectors_for("title")[0] == "h1"


def test_image_filters():
    assert adapter_zara.is_product_image("https://static.zara.net/photos///2024/V/0/1/p/1.jpg?ts=1")
    assert not adapter_zara.is_product_image("https://static.zara.net/stdstatic/1.6.0/images/logo.png")
    assert not adapter_zara.is_product_image("https://cdn.example.com/photos/1.jpg")
    assert adapter_mango.is_product_image("https://st.mngbcn.com/rcs/pics/static/T7/fotos/S20/1.jpg")
    assert not adapter_mango.is_product_image("https://st.mngbcn.com/rcs/pics/static/T7/fotos/S20/1.gif")


def test_table_rejects_unknown_fields():
    with pytest.raises(ValueError):
        table(price=[".p"], colour=[".c"])


def test_profiles_are_immutable():
    with pytest.raises(TypeError):
        GENERIC.selectors["title"] = ("h2",)
