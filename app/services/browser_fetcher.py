"""Playwright-based renderer for JavaScript-rendered (dynamic) web pages."""

import asyncio
import logging
from typing import List, Optional

from playwright.async_api import Browser, Error as PlaywrightError, async_playwright

from app.models.page import PageRecord
from app.services.extractor import extract_page_data
from app.services.fetcher import MAX_CONTENT_SIZE, validate_url

logger = logging.getLogger(__name__)

TIMEOUT_MS = 30_000  # 30 s in milliseconds

_LAUNCH_ARGS = [
    # --no-sandbox is required when running as root inside a container
    # (Docker drops the user namespace needed by Chromium's sandbox).
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]


async def _render_one(browser: Browser, url: str) -> Optional[PageRecord]:
    """Render *url* in a fresh page; ``None`` when it cannot be rendered."""
    try:
        validate_url(url)
    except ValueError as exc:
        logger.warning("Browser: skipping %s – %s", url, exc)
        return None

    page = await browser.new_page()
    try:
        await page.goto(url, wait_until="networkidle", timeout=TIMEOUT_MS)
        html = await page.content()
    except PlaywrightError as exc:
        logger.warning("Browser: failed to render %s – %s", url, exc)
        return None
    finally:
        await page.close()

    if len(html.encode()) > MAX_CONTENT_SIZE:
        logger.warning("Browser: rendered HTML for %s exceeds the maximum size", url)
        return None

    return extract_page_data(url, html)


async def fetch_pages_with_browser(urls: List[str], concurrency: int = 5) -> List[Optional[PageRecord]]:
    """Render every URL with one headless Chromium instance.

    URLs are processed in batches of *concurrency*; each batch finishes before
    the next one starts.  The result has one slot per input URL, ``None``
    where rendering failed.
    """
    results: List[Optional[PageRecord]] = []

    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=True, args=_LAUNCH_ARGS)
        try:
            for start in range(0, len(urls), concurrency):
                batch = urls[start : start + concurrency]
                results.extend(await asyncio.gather(*(_render_one(browser, url) for url in batch)))
        finally:
            await browser.close()

    return results
