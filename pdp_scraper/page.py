"""
The page capability the extraction core runs against.

`PlaywrightPage` wraps a live Playwright page; `SoupPage` serves static HTML
(saved pages, tests) through the same interface. Probes never raise for
timeouts or missing/detached elements, they return None. Only a page that can
no longer be used raises FatalPageError.
"""
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Protocol

from bs4 import BeautifulSoup, Tag
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .errors import FatalPageError

logger = logging.getLogger(__name__)

# Playwright error messages that mean the page itself is gone.
FATAL_MARKERS = (
    "has been closed",
    "Target closed",
    "Target crashed",
    "Page crashed",
    "Navigation failed",
    "Execution context was destroyed",
    "net::ERR_",
)

_GLOBAL_JS = """
(name) => {
    let value = window[name];
    if (value === undefined || value === null) {
        const el = document.getElementById(name);
        if (!el || el.tagName !== 'SCRIPT') return null;
        try { return JSON.parse(el.textContent || 'null'); } catch (e) { return null; }
    }
    if (typeof value !== 'object') return value;
    try { return JSON.parse(JSON.stringify(value)); } catch (e) { return null; }
}
"""


def is_fatal(exc: BaseException) -> bool:
    msg = str(exc)
    return any(marker in msg for marker in FATAL_MARKERS)


class PageHandle(Protocol):
    async def query_one(self, selector: str) -> Optional[Any]: ...
    async def query_all(self, selector: str) -> List[Any]: ...
    async def query_within(self, element: Any, selector: str) -> Optional[Any]: ...
    async def parent_of(self, element: Any) -> Optional[Any]: ...
    async def tag_of(self, element: Any) -> Optional[str]: ...
    async def text_of(self, element: Any) -> Optional[str]: ...
    async def attribute_of(self, element: Any, name: str) -> Optional[str]: ...
    async def global_value(self, name: str) -> Any: ...
    async def wait_for(self, selector: str, timeout_ms: int) -> bool: ...
    async def scroll_to(self, fraction: float, settle_ms: int = 0) -> None: ...
    def current_url(self) -> str: ...


class PlaywrightPage:
    def __init__(self, page: Page, probe_timeout_ms: int = 1500):
        self._page = page
        self._timeout = probe_timeout_ms / 1000

    def current_url(self) -> str:
        return self._page.url

    def _ensure_open(self):
        if self._page.is_closed():
            raise FatalPageError("page has been closed", self._page.url)

    async def _probe(self, fn, *args, default=None):
        self._ensure_open()
        try:
            return await asyncio.wait_for(fn(*args), self._timeout)
        except asyncio.TimeoutError:
            logger.debug("probe %s%r timed out", getattr(fn, "__name__", fn), args)
            return default
        except PlaywrightError as e:
            if is_fatal(e):
                raise FatalPageError(str(e), self._page.url) from e
            logger.debug("probe %s%r failed: %s", getattr(fn, "__name__", fn), args, e)
            return default

    async def query_one(self, selector):
        return await self._probe(self._page.query_selector, selector)

    async def query_all(self, selector):
        return await self._probe(self._page.query_selector_all, selector, default=[])

    async def query_within(self, element, selector):
        return await self._probe(element.query_selector, selector)

    async def parent_of(self, element):
        async def _parent():
            handle = await element.evaluate_handle("e => e.parentElement")
            return handle.as_element()
        return await self._probe(_parent)

    async def tag_of(self, element):
        return await self._probe(element.evaluate, "e => e.tagName.toLowerCase()")

    async def text_of(self, element):
        return await self._probe(element.text_content)

    async def attribute_of(self, element, name):
        return await self._probe(element.get_attribute, name)

    async def global_value(self, name):
        return await self._probe(self._page.evaluate, _GLOBAL_JS, name)

    async def wait_for(self, selector, timeout_ms):
        self._ensure_open()
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms, state="attached")
            return True
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError as e:
            if is_fatal(e):
                raise FatalPageError(str(e), self._page.url) from e
            return False

    async def scroll_to(self, fraction, settle_ms=0):
        await self._probe(
            self._page.evaluate,
            "(f) => window.scrollTo(0, document.body.scrollHeight * f)",
            fraction,
        )
        if settle_ms:
            await asyncio.sleep(settle_ms / 1000)


class SoupPage:
    """
    Static HTML behind the page interface. `globals` stands in for the
    page's window variables; `<script id=...>` JSON blocks such as
    __NEXT_DATA__ resolve the same way they do in a browser.
    """

    def __init__(self, html: str, url: str, globals: Optional[Dict[str, Any]] = None):
        self.soup = BeautifulSoup(html, "lxml")
        self.url = url
        self._globals = dict(globals or {})
        self.closed = False

    def close(self):
        self.closed = True

    def current_url(self) -> str:
        return self.url

    def _ensure_open(self):
        if self.closed:
            raise FatalPageError("page has been closed", self.url)

    def _select(self, root, selector, many=False):
        self._ensure_open()
        try:
            return root.select(selector) if many else root.select_one(selector)
        except Exception as e:  # soupsieve rejects browser-only pseudo classes
            logger.debug("selector %r not supported: %s", selector, e)
            return [] if many else None

    async def query_one(self, selector):
        return self._select(self.soup, selector)

    async def query_all(self, selector):
        return self._select(self.soup, selector, many=True)

    async def query_within(self, element, selector):
        return self._select(element, selector)

    async def parent_of(self, element):
        self._ensure_open()
        parent = element.parent
        return parent if isinstance(parent, Tag) and parent.name != "[document]" else None

    async def tag_of(self, element):
        self._ensure_open()
        return element.name

    async def text_of(self, element):
        self._ensure_open()
        if element.name in ("script", "style"):
            return element.string or ""
        return element.get_text()

    async def attribute_of(self, element, name):
        self._ensure_open()
        value = element.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    async def global_value(self, name):
        self._ensure_open()
        if self._globals.get(name) is not None:
            return self._globals[name]
        script = self.soup.find("script", id=name)
        if script is None:
            return None
        try:
            return json.loads(script.string or "null")
        except ValueError:
            return None

    async def wait_for(self, selector, timeout_ms):
        return self._select(self.soup, selector) is not None

    async def scroll_to(self, fraction, settle_ms=0):
        self._ensure_open()
