import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from playwright.async_api import Browser
from playwright.async_api import Error as PlaywrightError

from .cache import JsonlSink, ResultSink, load_raw, save_raw
from .config import Settings, load_settings
from .errors import ConfigError, FatalPageError
from .extractor import extract_product
from .fetcher import close_browser, init_browser, new_context, open_page
from .page import PlaywrightPage, SoupPage
from .schema import Product

logger = logging.getLogger(__name__)


def parse_start_urls(items: Iterable) -> List[str]:
    """Accepts plain strings or {"url": ...} objects."""
    urls = []
    for item in items:
        if isinstance(item, str) and item.strip():
            urls.append(item.strip())
        elif isinstance(item, dict) and isinstance(item.get("url"), str):
            urls.append(item["url"].strip())
        else:
            raise ValueError(f"Invalid URL format: {json.dumps(item, default=str)}")
    if not urls:
        raise ValueError("start URLs are required and must be a non-empty list")
    return urls


def load_urls(sources: Iterable[str]) -> List[str]:
    """URLs given directly, or files holding one URL per line / a JSON list."""
    items = []
    for src in sources:
        if src.startswith(("http://", "https://")):
            items.append(src)
            continue
        text = Path(src).read_text(encoding="utf-8")
        if src.endswith(".json"):
            data = json.loads(text)
            items.extend(data if isinstance(data, list) else data.get("startUrls", []))
        else:
            items.extend(line for line in text.splitlines() if line.strip() and not line.startswith("#"))
    return parse_start_urls(items)


async def process(url: str, browser: Browser, settings: Settings, sink: ResultSink) -> Product:
    """
    Extract one page, retrying the whole page on resource-level failures.
    Always emits exactly one record for the URL.
    """
    last_error: Optional[Exception] = None
    for attempt in range(settings.max_retries + 1):
        ctx = await new_context(browser, settings, url)
        try:
            page = await open_page(ctx, url, settings)
            if settings.save_html:
                save_raw(url, await page.content())
            product = await extract_product(PlaywrightPage(page, settings.probe_timeout_ms), url)
            sink.emit(product)
            return product
        except (FatalPageError, PlaywrightError) as e:
            last_error = e
            logger.warning("attempt %d/%d failed for %s: %s", attempt + 1, settings.max_retries + 1, url, e)
            if attempt < settings.max_retries:
                await asyncio.sleep(1.0 + attempt)
        finally:
            try:
                await ctx.close()
            except PlaywrightError:
                pass

    logger.error("giving up on %s after %d attempts", url, settings.max_retries + 1)
    product = Product.failed(url, f"{type(last_error).__name__}: {last_error}")
    sink.emit(product)
    return product


async def process_cached(url: str, sink: ResultSink) -> Optional[Product]:
    """Re-extract from a saved HTML snapshot; None when nothing is cached."""
    html = load_raw(url)
    if html is None:
        return None
    product = await extract_product(SoupPage(html, url), url)
    sink.emit(product)
    return product


async def run(urls: List[str], settings: Settings, sink: ResultSink, from_cache: bool = False):
    logger.info("starting crawl of %d URLs (concurrency %d)", len(urls), settings.max_concurrency)

    if from_cache:
        for url in urls:
            if await process_cached(url, sink) is None:
                logger.warning("no cached HTML for %s", url)
        return

    manager, _, browser = await init_browser(settings)
    sem = asyncio.Semaphore(settings.max_concurrency)

    async def safe_process(url: str):
        async with sem:
            logger.info("FETCH %s", url)
            try:
                await process(url, browser, settings, sink)
            except Exception as e:
                logger.exception("unexpected failure on %s", url)
                sink.emit(Product.failed(url, f"{type(e).__name__}: {e}"))

    try:
        await asyncio.gather(*(safe_process(u) for u in urls))
    finally:
        await close_browser(manager, browser)
    logger.info("crawl finished")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Extract product data from product detail pages.")
    ap.add_argument("sources", nargs="+", help="product URLs, or .txt/.json files listing them")
    ap.add_argument("-o", "--output", type=Path, help="JSONL output file")
    ap.add_argument("-c", "--concurrency", type=int, help="pages processed at once")
    ap.add_argument("--retries", type=int, help="retries per page after a failure")
    ap.add_argument("--desktop", action="store_true", help="use a desktop user agent")
    ap.add_argument("--headful", action="store_true", help="show the browser window")
    ap.add_argument("--stealth", action="store_true", help="apply playwright-stealth patches")
    ap.add_argument("--save-html", action="store_true", help="keep raw HTML under data/raw_html")
    ap.add_argument("--from-cache", action="store_true", help="re-extract from saved HTML only")
    ap.add_argument("--log-level", help="logging level (default from PDP_LOG_LEVEL)")
    return ap


def cli(argv: List[str] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(
            output_path=args.output,
            max_concurrency=args.concurrency,
            max_retries=args.retries,
            mobile_user_agent=False if args.desktop else None,
            headless=False if args.headful else None,
            stealth=True if args.stealth else None,
            save_html=True if args.save_html else None,
            log_level=args.log_level,
        )
        urls = load_urls(args.sources)
    except (ConfigError, ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    sink = JsonlSink(settings.output_path)
    asyncio.run(run(urls, settings, sink, from_cache=args.from_cache))
    logger.info("wrote %d records to %s", sink.count, settings.output_path)
    return 0


if __name__ == "__main__":
    sys.exit(cli())
