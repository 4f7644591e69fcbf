"""Link-following crawler used when a site publishes no sitemap."""

import logging
import re
from collections import deque
from typing import Deque, List, Set
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from app.services.fetcher import fetch_url
from app.services.sitemap import DEFAULT_LIMIT, SitemapEntry

logger = logging.getLogger(__name__)

HOME_PRIORITY = 1.0
PAGE_PRIORITY = 0.5

# Static assets and binary downloads are never queued
_SKIP_EXTENSIONS = re.compile(
    r"\.(?:pdf|jpe?g|png|gif|svg|webp|css|js|ico|xml|json|zip|tar|gz|woff2?|ttf)$",
    re.IGNORECASE,
)


def _origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def _normalise(url: str) -> str:
    """Strip URL fragment so http://x.com/page#sec and http://x.com/page are the same."""
    return urlparse(url)._replace(fragment="").geturl()


def _dedup_key(url: str) -> str:
    """Key used for the visited/queued sets; ``https://x.com/`` and ``https://x.com`` collide."""
    if urlparse(url).path in ("", "/"):
        return _origin(url)
    return url


def _is_home(url: str, origin: str) -> bool:
    return urlparse(url).path == "/" or url == origin


def _page_links(html: str, page_url: str) -> List[str]:
    """Return absolute, fragment-free targets of every ``<a href>`` on the page."""
    links: List[str] = []
    for a in BeautifulSoup(html, "lxml").find_all("a", href=True):
        href = str(a["href"]).strip()
        if not href:
            continue
        try:
            links.append(_normalise(urljoin(page_url, href)))
        except ValueError:
            logger.debug("Crawler: ignoring invalid href %r on %s", href, page_url)
    return links


async def crawl_site(base_url: str, limit: int = DEFAULT_LIMIT) -> List[SitemapEntry]:
    """Breadth-first crawl of same-origin pages reachable from *base_url*.

    Pages are fetched one at a time.  A page that fails to load is dropped
    and the crawl moves on.  The home page gets priority 1.0, every other
    page 0.5, and at most *limit* entries are returned in discovery order.
    """
    origin = _origin(base_url)
    seed = _normalise(base_url).rstrip("/") or origin

    queue: Deque[str] = deque([seed])
    queued: Set[str] = {_dedup_key(seed)}
    visited: Set[str] = set()
    entries: List[SitemapEntry] = []

    while queue and len(entries) < limit:
        url = queue.popleft()
        key = _dedup_key(url)
        queued.discard(key)
        if key in visited:
            continue
        visited.add(key)

        try:
            html = await fetch_url(url)
        except (ValueError, httpx.HTTPError, RuntimeError) as exc:
            logger.warning("Crawler: skipping %s – %s", url, exc)
            continue

        entries.append(
            SitemapEntry(url=url, priority=HOME_PRIORITY if _is_home(url, origin) else PAGE_PRIORITY)
        )

        for link in _page_links(html, url):
            link_key = _dedup_key(link)
            if _origin(link) != origin or link_key in visited or link_key in queued:
                continue
            if _SKIP_EXTENSIONS.search(urlparse(link).path):
                logger.debug("Crawler: skipping static asset %s", link)
                continue
            queue.append(link)
            queued.add(link_key)

    return entries
