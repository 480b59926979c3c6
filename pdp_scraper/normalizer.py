import math
import re
from typing import Any, Iterable, List, Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

CURRENCY_SYMBOLS = {
    "€": "EUR",
    "$": "USD",
    "£": "GBP",
    "¥": "JPY",
    "₹": "INR",
    "₽": "RUB",
    "₴": "UAH",
    "₸": "KZT",
}

CURRENCY_NAMES = {
    "EURO": "EUR",
    "DOLLAR": "USD",
    "POUND": "GBP",
    "YEN": "JPY",
    "RUBLE": "RUB",
}

# Prefixed dollar signs, checked before the bare "$". A prefix glued to a
# longer code ("CA$") must not match a shorter one ("A$").
PREFIXED_SYMBOLS = {
    "US$": "USD",
    "CA$": "CAD",
    "NZ$": "NZD",
    "MX$": "MXN",
    "HK$": "HKD",
    "C$": "CAD",
    "A$": "AUD",
    "S$": "SGD",
    "R$": "BRL",
    "ZŁ": "PLN",
}

ISO_CODES = frozenset({
    "USD", "EUR", "GBP", "JPY", "INR", "RUB", "UAH", "KZT", "PLN", "CZK",
    "SEK", "DKK", "NOK", "CHF", "CNY", "AUD", "CAD", "MXN", "BRL", "TRY",
    "AED", "SAR", "HKD", "SGD", "NZD", "KRW", "ZAR", "HUF", "RON", "ILS",
})

_CODE = re.compile(r"^[A-Z]{3}$")
_CODE_TOKEN = re.compile(r"(?<![A-Z])([A-Z]{3})(?![A-Z])")
_SYMBOL_CHARS = re.compile("[" + re.escape("".join(CURRENCY_SYMBOLS)) + "]")
_PREFIXED = re.compile(
    r"(?<![A-Z])("
    + "|".join(re.escape(s) for s in sorted(PREFIXED_SYMBOLS, key=len, reverse=True))
    + ")"
)
_NUMBER = re.compile(r"\d+(?:\.\d+)?|\.\d+")
_DECIMAL_COMMA = re.compile(r"^\d{1,3}(?:\.\d{3})*,\d{2}$|^\d+,\d{2}$")


def normalize_currency(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    code = value.strip().upper()
    if code in CURRENCY_SYMBOLS:
        return CURRENCY_SYMBOLS[code]
    if code in CURRENCY_NAMES:
        return CURRENCY_NAMES[code]
    if _CODE.match(code):
        return code
    return None


def currency_from_text(text: Any) -> Optional[str]:
    """
    Detect a currency inside a longer string such as "29,95 EUR" or "£19.99".
    ISO codes win over symbols since "$" alone is ambiguous.
    """
    if not isinstance(text, str) or not text.strip():
        return None
    upper = text.upper()
    for token in _CODE_TOKEN.findall(upper):
        if token in ISO_CODES:
            return token
    m = _PREFIXED.search(upper)
    if m:
        return PREFIXED_SYMBOLS[m.group(1)]
    for sym, code in CURRENCY_SYMBOLS.items():
        if sym in text:
            return code
    for word in re.findall(r"[A-Z]+", upper):
        if word in CURRENCY_NAMES:
            return CURRENCY_NAMES[word]
    return None


def extract_price(value: Any) -> Optional[float]:
    """
    Parse a price from a number or a display string.

    Returns a finite, non-negative float or None. A string without digits is
    None, never 0.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = float(value)
        return value if math.isfinite(value) and value >= 0 else None
    if not isinstance(value, str):
        return None

    cleaned = re.sub(r"\s+", "", _SYMBOL_CHARS.sub("", value))
    if _DECIMAL_COMMA.match(cleaned):
        # "29,95" / "1.299,00": the comma is the decimal mark, not a separator
        cleaned = cleaned.replace(".", "").replace(",", ".")
    else:
        cleaned = cleaned.replace(",", "")

    m = _NUMBER.search(cleaned)
    if not m:
        return None
    price = float(m.group(0))
    return price if math.isfinite(price) else None


def resolve_url(url: Any, base_url: Any) -> Optional[str]:
    if not isinstance(url, str) or not url.strip():
        return None
    url = url.strip()
    if url.startswith(("http://", "https://")):
        return url
    if not isinstance(base_url, str):
        return None
    try:
        base = urlsplit(base_url)
        if base.scheme not in ("http", "https") or not base.netloc:
            return None
        resolved = urljoin(base_url, url)
    except ValueError:
        return None
    return resolved if resolved.startswith(("http://", "https://")) else None


def normalize_empty(value: Any) -> Any:
    if value is None or value == "":
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def clean_text(value: Any) -> Optional[str]:
    """Trimmed string for a text-like value, None when empty."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    return normalize_empty(value.strip())


def extract_domain(url: Any) -> Optional[str]:
    if not isinstance(url, str):
        return None
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    if not host:
        return None
    return re.sub(r"^www\.", "", host.lower())


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

# Path tokens (split on "/", "_", "-", ".") that mark a non-product image.
# "placeholder" is rejected anywhere in the path.
PLACEHOLDER_TOKENS = frozenset({
    "spacer", "1x1", "loader", "sprite", "sprites",
    "favicon", "logo", "logos", "icon", "icons",
})
# Tokens that only mark a filler image when the file name is made of nothing else,
# e.g. "transparent.gif" but not "transparent-bag.jpg".
FILLER_TOKENS = frozenset({"transparent", "blank", "pixel", "loading", "empty"})

# CDNs that resize on request; their URLs are kept as given.
RESIZING_CDNS = ("imagekit.io", "cloudinary.com")
# CDNs that encode the rendition size in the path.
PATH_SIZE_CDNS = ("static.zara.net", "st.mngbcn.com")

_SIZE_SUFFIX = re.compile(r"_(?:w\d{2,4}|\d{3,4}(?:x\d{2,4})?)(?=\.[A-Za-z0-9]+$|$)")
_NAMED_SIZE = re.compile(r"_(?:small|medium|large|xxxl|xxl|xl)(?=\.[A-Za-z0-9]+$|$)", re.I)
_PATH_SIZE = re.compile(r"/(?:\d+x\d+|w_\d+|w/\d+)(?=/)", re.I)
_SIZE_PARAMS = {"w", "width", "h", "height"}
_PATH_TOKEN = re.compile(r"[/_.\-]+")


def is_acceptable_image(url: Any) -> bool:
    if not isinstance(url, str) or not url.startswith(("http://", "https://")):
        return False
    try:
        path = urlsplit(url).path.lower()
    except ValueError:
        return False
    if path.endswith(".svg") or "placeholder" in path:
        return False
    tokens = [t for t in _PATH_TOKEN.split(path) if t]
    if PLACEHOLDER_TOKENS.intersection(tokens):
        return False
    name = path.rpartition("/")[2]
    stem = name.rpartition(".")[0] or name
    stem_tokens = {t for t in _PATH_TOKEN.split(stem) if t and not t.isdigit()}
    return not (stem_tokens and stem_tokens <= FILLER_TOKENS)


def dedupe(urls: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for u in urls:
        if u not in seen:
            seen.add(u)
            out.append(u)
    return out


def filter_images(urls: Iterable[Any]) -> List[str]:
    return dedupe(u for u in urls if is_acceptable_image(u))


def _host_in(host: str, cdns) -> bool:
    return any(host.endswith(c) for c in cdns)


def _largest(url: str) -> str:
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    host = parts.hostname or ""
    if _host_in(host, RESIZING_CDNS):
        return url

    if _host_in(host, PATH_SIZE_CDNS):
        path = _PATH_SIZE.sub("", parts.path)
        query = ""
    else:
        head, _, tail = parts.path.rpartition("/")
        tail = _NAMED_SIZE.sub("", _SIZE_SUFFIX.sub("", tail))
        path = f"{head}/{tail}" if head or parts.path.startswith("/") else tail
        query = urlencode([
            (k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
            if k.lower() not in _SIZE_PARAMS
        ])

    if path.strip("/") == "":
        return url
    candidate = urlunsplit((parts.scheme, parts.netloc, path, query, parts.fragment))
    return candidate if candidate.startswith(("http://", "https://")) else url


def get_largest_images(urls: Iterable[Any]) -> List[str]:
    """
    Best-effort upgrade of each image URL to its largest rendition.
    Falls back to the original URL when stripping leaves nothing usable.
    """
    return dedupe(_largest(u) for u in urls if isinstance(u, str) and u)
