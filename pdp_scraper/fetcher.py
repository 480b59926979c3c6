import asyncio
import logging
import random
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from playwright.async_api import Browser, BrowserContext, Page, Playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright
from playwright_stealth import Stealth

from .config import Settings
from .errors import FatalPageError

logger = logging.getLogger(__name__)

MOBILE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_6 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1"
)
DESKTOP_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
MOBILE_VIEWPORT = {"width": 390, "height": 844}
DESKTOP_VIEWPORT = {"width": 1920, "height": 1080}

# (domain suffix, cookie) set before navigation
LOCALE_COOKIES = (
    ("zara.com", {"name": "locale", "value": "en_US", "domain": ".zara.com", "path": "/"}),
)

LOCATION_PHRASES = ("select your location", "choose your country")
LOCATION_MARKERS = ".country-selector, [data-location], [data-country]"
LOCATION_CONTROLS = (
    "button[data-location='us']",
    "button[data-location='uk']",
    "a[href*='/us/en']",
    "a[href*='/uk/en']",
    ".country-selector a[href*='/us']",
    ".country-selector a[href*='/uk']",
    "[data-country-code='us']",
    "[data-country-code='uk']",
    "button:has-text('United States')",
    "button:has-text('United Kingdom')",
    "a:has-text('United States')",
    "a:has-text('United Kingdom')",
)
LOCATION_BUTTON_TEXT = ("United States", "United Kingdom", "Continue", "Select")


async def init_browser(settings: Settings):
    """
    Starts Playwright (stealthed if configured) and launches Chromium.
    Returns (context manager, playwright, browser); close with close_browser().
    """
    manager = Stealth().use_async(async_playwright()) if settings.stealth else async_playwright()
    pw: Playwright = await manager.__aenter__()
    browser = await pw.chromium.launch(
        headless=settings.headless,
        args=["--no-sandbox", "--disable-setuid-sandbox"],
    )
    return manager, pw, browser


async def close_browser(manager, browser: Browser):
    await browser.close()
    await manager.__aexit__(None, None, None)


async def new_context(browser: Browser, settings: Settings, url: str) -> BrowserContext:
    mobile = settings.mobile_user_agent
    ctx = await browser.new_context(
        user_agent=MOBILE_UA if mobile else DESKTOP_UA,
        viewport=MOBILE_VIEWPORT if mobile else DESKTOP_VIEWPORT,
        is_mobile=mobile,
    )
    host = (urlsplit(url).hostname or "").lower()
    cookies = [c for suffix, c in LOCALE_COOKIES if host.endswith(suffix)]
    if cookies:
        try:
            await ctx.add_cookies(cookies)
        except PlaywrightError as e:
            logger.debug("could not set locale cookies for %s: %s", host, e)
    return ctx


async def _heading(page: Page) -> str:
    try:
        el = await page.query_selector("h1")
        return ((await el.text_content()) or "") if el else ""
    except PlaywrightError:
        return ""


async def is_location_page(page: Page) -> bool:
    try:
        title = (await page.title()).lower()
    except PlaywrightError:
        title = ""
    heading = (await _heading(page)).lower()
    if any(p in title or p in heading for p in LOCATION_PHRASES):
        return True
    try:
        return await page.query_selector(LOCATION_MARKERS) is not None
    except PlaywrightError:
        return False


async def _click_known_control(page: Page) -> bool:
    for sel in LOCATION_CONTROLS:
        try:
            el = await page.query_selector(sel)
            if el:
                await el.click()
                await page.wait_for_timeout(2000)
                return True
        except PlaywrightError:
            continue
    return False


def us_locale_url(url: str) -> Optional[str]:
    """/cy/en/shirt.html -> /us/en/shirt.html; None when already US."""
    parts = urlsplit(url)
    if parts.path.startswith("/us/en"):
        return None
    segments = parts.path.split("/")
    if len(segments) > 2 and segments[1] and segments[2]:
        path = "/".join(["", "us", "en"] + segments[3:])
    else:
        path = "/us/en" + parts.path
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


async def _rewrite_locale(page: Page, timeout_ms: int) -> bool:
    target = us_locale_url(page.url)
    if not target:
        return False
    await page.goto(target, wait_until="domcontentloaded", timeout=timeout_ms)
    await page.wait_for_timeout(3000)
    return True


async def _click_any_country(page: Page) -> bool:
    for el in await page.query_selector_all("button, a"):
        try:
            text = await el.text_content() or ""
            if any(t in text for t in LOCATION_BUTTON_TEXT):
                await el.click()
                await page.wait_for_timeout(2000)
                return True
        except PlaywrightError:
            continue
    return False


async def pass_location_gate(page: Page, timeout_ms: int = 60000) -> bool:
    """Try to get past a country/locale picker. Returns True if a strategy acted."""
    strategies = (
        ("known control", _click_known_control),
        ("locale rewrite", lambda p: _rewrite_locale(p, timeout_ms)),
        ("country button", _click_any_country),
    )
    for name, strategy in strategies:
        try:
            if await strategy(page):
                logger.info("location gate: %s strategy acted on %s", name, page.url)
                try:
                    await page.wait_for_load_state("domcontentloaded", timeout=15000)
                except PlaywrightError:
                    pass
                return True
        except PlaywrightError as e:
            logger.warning("location gate: %s strategy failed: %s", name, e)
    logger.warning("could not pass location gate on %s, continuing with current page", page.url)
    return False


async def open_page(context: BrowserContext, url: str, settings: Settings) -> Page:
    """
    Navigate and wait for the page to settle. Raises FatalPageError when the
    page cannot be loaded at all.
    """
    page = await context.new_page()
    await asyncio.sleep(random.uniform(0.3, 0.9))
    timeout = settings.navigation_timeout_ms
    try:
        await page.goto(url, wait_until="domcontentloaded", timeout=timeout)
    except PlaywrightError as e:
        logger.warning("navigation to %s did not finish cleanly: %s", url, e)
        try:
            await page.wait_for_load_state("domcontentloaded", timeout=30000)
        except PlaywrightError as exc:
            raise FatalPageError(f"navigation failed: {e}", url) from exc

    try:
        await page.wait_for_load_state("networkidle", timeout=30000)
    except PlaywrightError:
        logger.debug("network never went idle for %s, continuing", url)
    await page.wait_for_timeout(settings.settle_ms)

    if await is_location_page(page):
        logger.warning("location selection page detected on %s", url)
        await pass_location_gate(page, timeout)
    return page
