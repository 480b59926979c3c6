from pdp_scraper.tree import collect_image_urls, find_first, iter_values, keys

STATE = {
    "user": {"id": "u1"},
    "product": {
        "currency": "eur",
        "media": {"gallery": [{"url": "https://img.a.com/1.jpg"}, {"src": "/2.jpg"}]},
        "deep": {"a": {"b": {"c": {"d": {"currency": "USD"}}}}},
    },
    "photos": ["https://img.a.com/3.jpg", 7],
}


def test_iter_values_is_breadth_first():
    assert list(iter_values(STATE, keys("currency"))) == ["eur", "USD"]


def test_depth_bound():
    assert list(iter_values(STATE, keys("currency"), max_depth=1)) == ["eur"]
    assert list(iter_values(STATE, keys("currency"), max_depth=0)) == []


def test_find_first_with_accept():
    assert find_first(STATE, keys("currency"), accept=lambda v: v if v == "USD" else None) == "USD"
    assert find_first(STATE, keys("missing")) is None


def test_collect_image_urls():
    urls = collect_image_urls(STATE)
    assert "https://img.a.com/1.jpg" in urls
    assert "/2.jpg" in urls
    assert "https://img.a.com/3.jpg" in urls


def test_cycles_do_not_loop():
    a = {"images": ["https://x.com/a.jpg"]}
    a["self"] = a
    assert collect_image_urls(a) == ["https://x.com/a.jpg"]


def test_wide_state_graph():
    state = {"apollo": [{"__typename": "Variant", "n": i} for i in range(50000)] + [{"sku": "last"}]}
    assert find_first(state, keys("sku")) == "last"
