"""Sitemap discovery and parsing.

Discovery probes robots.txt and a short list of well-known sitemap paths.
Parsing understands both ``<urlset>`` documents and ``<sitemapindex>``
documents; child sitemaps of an index are fetched one after another and share
a single *limit* budget.
"""

import logging
import re
from typing import List, NamedTuple, Optional
from urllib.parse import urljoin, urlparse
from xml.etree import ElementTree

import httpx

from app.services.fetcher import fetch_url

logger = logging.getLogger(__name__)

_PROBE_TIMEOUT = 5
_SITEMAP_TIMEOUT = 10

DEFAULT_PRIORITY = 0.5
DEFAULT_LIMIT = 50

# Nested sitemap indexes are followed at most this deep
_MAX_INDEX_DEPTH = 3

# Well-known sitemap locations, probed after any robots.txt declaration
_SITEMAP_PATHS = (
    "/sitemap.xml",
    "/sitemap_index.xml",
    "/sitemap/sitemap.xml",
)

_ROBOTS_SITEMAP_RE = re.compile(r"^\s*Sitemap:\s*(.+)$", re.IGNORECASE | re.MULTILINE)


class SitemapEntry(NamedTuple):
    url: str
    priority: float = DEFAULT_PRIORITY
    lastmod: Optional[str] = None


class SitemapFetchError(RuntimeError):
    """A sitemap URL answered with a non-success HTTP status."""

    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(f"Failed to fetch sitemap {url}: HTTP {status_code}")
        self.url = url
        self.status_code = status_code


def _origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def _local_name(tag: str) -> str:
    """Return *tag* without its ``{namespace}`` prefix."""
    return tag.rsplit("}", 1)[-1]


def _child_text(elem: ElementTree.Element, name: str) -> str:
    for child in elem:
        if _local_name(child.tag) == name:
            return (child.text or "").strip()
    return ""


def _parse_priority(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_PRIORITY
    if value != value:  # NaN
        return DEFAULT_PRIORITY
    return min(max(value, 0.0), 1.0)


async def _fetch_text(url: str) -> str:
    """Return the body of *url*, or an empty string on any failure."""
    try:
        return await fetch_url(url, timeout=_PROBE_TIMEOUT)
    except (ValueError, httpx.HTTPError, RuntimeError) as exc:
        logger.debug("Sitemap probe failed for %s – %s", url, exc)
        return ""


def _looks_like_sitemap(text: str) -> bool:
    return "<urlset" in text or "<sitemapindex" in text


async def discover_sitemap_url(base_url: str) -> Optional[str]:
    """Locate the site's sitemap.

    The ``Sitemap:`` directive in robots.txt is tried first, then the
    well-known paths in order.  Returns ``None`` when nothing answers with
    sitemap XML; never raises.
    """
    origin = _origin(base_url)
    candidates: List[str] = []

    robots = await _fetch_text(f"{origin}/robots.txt")
    match = _ROBOTS_SITEMAP_RE.search(robots)
    if match:
        candidates.append(match.group(1).strip())

    candidates.extend(f"{origin}{path}" for path in _SITEMAP_PATHS)

    for candidate in candidates:
        text = await _fetch_text(candidate)
        if text and _looks_like_sitemap(text):
            logger.info("Found sitemap at %s", candidate)
            return candidate

    return None


async def fetch_sitemap(sitemap_url: str, limit: int = DEFAULT_LIMIT) -> List[SitemapEntry]:
    """Fetch and parse *sitemap_url*.

    Raises:
        SitemapFetchError: when the sitemap answers with a non-2xx status.
        ValueError / httpx.HTTPError / RuntimeError: on other fetch failures.
    """
    return await _fetch_sitemap(sitemap_url, limit, depth=0)


async def parse_sitemap_xml(
    xml_text: str, origin: str = "", limit: int = DEFAULT_LIMIT
) -> List[SitemapEntry]:
    """Parse a sitemap document into entries.

    A ``<sitemapindex>`` is expanded by fetching each child sitemap in turn;
    broken children are skipped.  A ``<urlset>`` is returned sorted by
    priority, highest first, keeping document order for ties.
    """
    return await _parse(xml_text, origin, limit, depth=0)


async def _fetch_sitemap(sitemap_url: str, limit: int, depth: int) -> List[SitemapEntry]:
    try:
        xml_text = await fetch_url(sitemap_url, timeout=_SITEMAP_TIMEOUT)
    except httpx.HTTPStatusError as exc:
        raise SitemapFetchError(sitemap_url, exc.response.status_code) from exc
    return await _parse(xml_text, _origin(sitemap_url), limit, depth)


async def _parse(xml_text: str, origin: str, limit: int, depth: int) -> List[SitemapEntry]:
    if limit <= 0:
        return []

    try:
        root = ElementTree.fromstring(xml_text.strip())
    except ElementTree.ParseError as exc:
        logger.warning("Failed to parse sitemap XML: %s", exc)
        return []

    if _local_name(root.tag) == "sitemapindex":
        child_urls = [
            loc
            for loc in (_child_text(elem, "loc") for elem in root if _local_name(elem.tag) == "sitemap")
            if loc
        ]
        if child_urls:
            return await _expand_index(child_urls, origin, limit, depth)

    if _local_name(root.tag) != "urlset":
        return []

    return _parse_urlset(root, origin, limit)


async def _expand_index(
    child_urls: List[str], origin: str, limit: int, depth: int
) -> List[SitemapEntry]:
    if depth >= _MAX_INDEX_DEPTH:
        logger.warning("Sitemap index nesting deeper than %d levels, ignoring", _MAX_INDEX_DEPTH)
        return []

    entries: List[SitemapEntry] = []
    for child_url in child_urls:
        if len(entries) >= limit:
            break
        child_url = urljoin(origin + "/", child_url) if origin else child_url
        try:
            entries.extend(await _fetch_sitemap(child_url, limit - len(entries), depth + 1))
        except (ValueError, httpx.HTTPError, RuntimeError) as exc:
            logger.warning("Skipping child sitemap %s – %s", child_url, exc)
    return entries[:limit]


def _parse_urlset(root: ElementTree.Element, origin: str, limit: int) -> List[SitemapEntry]:
    entries: List[SitemapEntry] = []
    for elem in root:
        if len(entries) >= limit:
            break
        if _local_name(elem.tag) != "url":
            continue
        loc = _child_text(elem, "loc")
        if not loc:
            continue
        if origin:
            loc = urljoin(origin + "/", loc)
        entries.append(
            SitemapEntry(
                url=urlparse(loc)._replace(fragment="").geturl(),
                priority=_parse_priority(_child_text(elem, "priority")),
                lastmod=_child_text(elem, "lastmod") or None,
            )
        )

    # sorted() is stable, so equal priorities keep their document order
    return sorted(entries, key=lambda entry: entry.priority, reverse=True)
