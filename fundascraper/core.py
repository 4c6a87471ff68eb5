"""
Scraping orchestration and browser management.
"""
import asyncio
import logging
import os
import random
from typing import List, Optional, Tuple

from playwright.async_api import async_playwright

from .controller import CrawlController, Sink
from .locator import page_title
from .models import CanonicalListing, CrawlStatus

logger = logging.getLogger(__name__)

FETCH_ATTEMPTS = 3
NAV_DELAY = (1.0, 3.0)
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)
EXTRA_HEADERS = {
    "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "accept-language": "en-US,en;q=0.9",
    "sec-fetch-dest": "document",
    "sec-fetch-mode": "navigate",
    "sec-fetch-site": "none",
    "sec-fetch-user": "?1",
}


def save_debug_page(debug_dir: Optional[str], name: str, html: str) -> Optional[str]:
    """Keep the raw HTML of a page we could not use, for offline inspection."""
    if not debug_dir:
        return None
    os.makedirs(debug_dir, exist_ok=True)
    path = os.path.join(debug_dir, f"{name}.html")
    with open(path, "w", encoding="utf-8") as f:
        f.write(html or "")
    return path


async def fetch_page(context, page, url: str) -> Tuple[object, str, str]:
    """
    Load ``url`` and return (page, html, title).

    Retries navigation errors; a crashed page is replaced with a fresh one.
    The last error propagates.
    """
    for attempt in range(1, FETCH_ATTEMPTS + 1):
        # Human-like delay before each navigation
        await asyncio.sleep(random.uniform(*NAV_DELAY))
        try:
            if page.is_closed():
                page = await context.new_page()
            await page.goto(url, timeout=60_000, wait_until="domcontentloaded")
            html = await page.content()
            title = await page.title() or page_title(html)
            logger.debug(f"Response length: {len(html)}, title: {title!r}")
            return page, html, title
        except Exception as e:
            logger.warning(f"Fetch attempt {attempt}/{FETCH_ATTEMPTS} failed for {url}: {e}")
            if attempt == FETCH_ATTEMPTS:
                raise


async def run_scrape(
    start_url: str,
    results_wanted: int,
    max_pages: int,
    headless: bool = True,
    sink: Optional[Sink] = None,
    debug_dir: Optional[str] = "debug"
) -> Tuple[List[CanonicalListing], CrawlStatus]:
    """
    Main scraping orchestration function.

    Walks the search-results pages starting at ``start_url``, feeding every
    page to a CrawlController until it reports a terminal state. Returns the
    collected listings and the final status.
    """
    controller = CrawlController(quota=results_wanted, max_pages=max_pages, sink=sink)
    collected: List[CanonicalListing] = []
    is_headless = bool(headless) or os.getenv("HEADLESS", "").strip().lower() in ("1", "true")

    logger.info(f"Starting scraper with URL: {start_url}")
    logger.info(f"Results wanted: {results_wanted}, Max pages: {max_pages}")

    launch_args = ["--disable-blink-features=AutomationControlled"]
    if is_headless:
        launch_args += ["--disable-dev-shm-usage", "--no-sandbox", "--disable-gpu"]

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=is_headless, args=launch_args)
        logger.info(f">>> Headless mode: {is_headless}")

        context = await browser.new_context(
            viewport={"width": 1280, "height": 900},
            user_agent=USER_AGENT,
            locale="en-US",
            extra_http_headers=EXTRA_HEADERS,
        )
        context.set_default_timeout(30_000)
        context.set_default_navigation_timeout(60_000)
        page = await context.new_page()

        url: Optional[str] = start_url
        fetched = 0
        while url:
            fetched += 1
            try:
                page, html, title = await fetch_page(context, page, url)
            except Exception:
                logger.exception(f"Request failed: {url}")
                break

            logger.info(f"Page title: {title}")
            outcome = controller.process_page(url, title, html)
            collected.extend(outcome.batch)

            if outcome.status is CrawlStatus.BLOCKED:
                logger.error("BLOCKED! Need better stealth or proxies")
                save_debug_page(debug_dir, f"debug-blocked-{fetched}", html)
            elif outcome.no_listings:
                logger.warning("No data extracted! Saving debug HTML...")
                save_debug_page(debug_dir, f"debug-page-{fetched}", html)

            if outcome.next_url:
                logger.info(f"Enqueueing page {outcome.page_number + 1}")
            url = outcome.next_url

        await context.close()
        await browser.close()

    logger.info(f"Scraping complete. Collected {controller.collected} listings ({controller.status.value}).")
    return collected, controller.status
