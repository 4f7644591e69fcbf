"""End-to-end orchestration: discover URLs, render pages, build the documents."""

import asyncio
import logging
import os
from datetime import date, datetime
from typing import (
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Literal,
    NamedTuple,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
    Union,
)
from urllib.parse import urlparse

import httpx

from app.models.config import LlmConfig, PageOverride
from app.models.page import PageRecord
from app.services.ai import generate_descriptions, get_provider_env_var
from app.services.browser_fetcher import fetch_pages_with_browser
from app.services.crawler import crawl_site
from app.services.extractor import extract_page_data
from app.services.fetcher import fetch_url
from app.services.firecrawl import API_KEY_ENV_VAR as FIRECRAWL_KEY_ENV_VAR, crawl_with_firecrawl
from app.services.formatter import format_llm_full_txt, format_llm_txt
from app.services.sitemap import SitemapEntry, discover_sitemap_url, fetch_sitemap

logger = logging.getLogger(__name__)

Strategy = Literal["sitemap", "crawler", "firecrawl"]
Renderer = Literal["http", "browser", "firecrawl"]

DEFAULT_LIMIT = 50
DEFAULT_CONCURRENCY = 5

T = TypeVar("T")
R = TypeVar("R")


class GeneratedSite(NamedTuple):
    strategy: Strategy
    site_name: str
    site_description: str
    pages: List[PageRecord]
    llm_txt: str
    llm_full_txt: str


def normalize_base_url(url: str) -> str:
    """Add ``https://`` when *url* has no scheme."""
    return url if url.startswith(("http://", "https://")) else f"https://{url}"


def _select_urls(entries: Sequence[SitemapEntry], limit: int, exclude: Iterable[str]) -> List[str]:
    """Deduplicate entry URLs in order, drop excluded ones, cap at *limit*."""
    excluded = set(exclude)
    seen: set = set()
    urls: List[str] = []
    for entry in entries:
        if entry.url in seen or entry.url in excluded:
            continue
        seen.add(entry.url)
        urls.append(entry.url)
        if len(urls) >= limit:
            break
    return urls


async def discover_urls(
    base_url: str,
    sitemap_url: Optional[str] = None,
    limit: int = DEFAULT_LIMIT,
    exclude: Iterable[str] = (),
) -> Tuple[Strategy, List[str]]:
    """Return the page URLs to process and how they were found.

    An explicit *sitemap_url* is fetched as given and its errors propagate.
    Otherwise the sitemap is auto-discovered; when there is none, or it
    yields nothing, the site is crawled instead.
    """
    if sitemap_url:
        logger.info("Using sitemap %s", sitemap_url)
        entries = await fetch_sitemap(sitemap_url, limit)
        return "sitemap", _select_urls(entries, limit, exclude)

    discovered = await discover_sitemap_url(base_url)
    if discovered:
        try:
            entries = await fetch_sitemap(discovered, limit)
        except (ValueError, httpx.HTTPError, RuntimeError) as exc:
            logger.warning("Discovered sitemap %s could not be read – %s", discovered, exc)
            entries = []
        urls = _select_urls(entries, limit, exclude)
        if urls:
            logger.info("Sitemap %s listed %d URLs", discovered, len(urls))
            return "sitemap", urls

    logger.info("No usable sitemap for %s, crawling site", base_url)
    entries = await crawl_site(base_url, limit)
    return "crawler", _select_urls(entries, limit, exclude)


async def process_in_batches(
    items: Sequence[T], batch_size: int, fn: Callable[[T], Awaitable[R]]
) -> List[R]:
    """Run *fn* over *items*, at most *batch_size* at a time.

    Each batch is awaited in full before the next starts.  Results keep the
    input order.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1.")
    results: List[R] = []
    for start in range(0, len(items), batch_size):
        batch = items[start : start + batch_size]
        results.extend(await asyncio.gather(*(fn(item) for item in batch)))
    return results


async def fetch_and_extract(url: str) -> Optional[PageRecord]:
    """Fetch *url* over plain HTTP and extract it; ``None`` on failure."""
    try:
        html = await fetch_url(url)
    except (ValueError, httpx.HTTPError, RuntimeError) as exc:
        logger.warning("Pipeline: skipping %s – %s", url, exc)
        return None
    return extract_page_data(url, html)


def apply_override(page: PageRecord, overrides: Dict[str, PageOverride]) -> PageRecord:
    """Overwrite the title/description fields configured for *page*'s URL."""
    override = overrides.get(page.url)
    if override is None:
        return page
    return page.model_copy(update=override.model_dump(exclude_none=True))


def _find_home_page(pages: Sequence[PageRecord]) -> Optional[PageRecord]:
    for page in pages:
        if urlparse(page.url).path == "/":
            return page
    return pages[0] if pages else None


def resolve_site_metadata(
    pages: Sequence[PageRecord], base_url: str, config: LlmConfig
) -> Tuple[str, str]:
    """Pick the site name and description: config first, then the home page."""
    parsed = urlparse(base_url)
    home = _find_home_page(pages)
    site_name = config.site_name or (home.title if home else "") or parsed.hostname or base_url
    site_description = (
        config.site_description
        or (home.description if home else "")
        or f"Website at {parsed.scheme}://{parsed.netloc}"
    )
    return site_name, site_description


async def _render_pages(
    base_url: str,
    renderer: Renderer,
    config: LlmConfig,
    sitemap_url: Optional[str],
    limit: int,
    concurrency: int,
) -> Tuple[Strategy, List[PageRecord]]:
    if renderer == "firecrawl":
        api_key = os.environ.get(FIRECRAWL_KEY_ENV_VAR)
        if not api_key:
            raise ValueError(f"The firecrawl renderer requires the {FIRECRAWL_KEY_ENV_VAR} env var.")
        excluded = set(config.exclude)
        pages = await crawl_with_firecrawl(base_url, api_key, limit)
        return "firecrawl", [page for page in pages if page.url not in excluded]

    strategy, urls = await discover_urls(base_url, sitemap_url, limit, config.exclude)
    logger.info("Rendering %d pages with %s renderer", len(urls), renderer)

    if renderer == "browser":
        rendered = await fetch_pages_with_browser(urls, concurrency)
    else:
        rendered = await process_in_batches(urls, concurrency, fetch_and_extract)

    pages = [page for page in rendered if page is not None]
    logger.info("Extracted %d of %d pages", len(pages), len(urls))
    return strategy, pages


async def _enrich(pages: List[PageRecord], ai_provider: str) -> List[PageRecord]:
    env_var = get_provider_env_var(ai_provider)
    api_key = os.environ.get(env_var)
    if not api_key:
        logger.warning("AI provider %s requires %s; skipping AI descriptions", ai_provider, env_var)
        return pages
    logger.info("Generating descriptions with %s for %d pages", ai_provider, len(pages))
    return await generate_descriptions(pages, ai_provider, api_key)


async def generate_site(
    base_url: str,
    config: Optional[LlmConfig] = None,
    sitemap_url: Optional[str] = None,
    limit: int = DEFAULT_LIMIT,
    concurrency: int = DEFAULT_CONCURRENCY,
    renderer: Renderer = "http",
    ai_provider: Optional[str] = None,
    generated_at: Optional[Union[date, datetime]] = None,
) -> GeneratedSite:
    """Run the whole pipeline for *base_url* and return both documents.

    Raises:
        ValueError: on invalid arguments or a missing Firecrawl API key.
        SitemapFetchError: when an explicit *sitemap_url* answers with an error.
        FirecrawlError: when the Firecrawl job fails.
    """
    if limit < 1:
        raise ValueError("limit must be at least 1.")
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1.")
    if ai_provider:
        get_provider_env_var(ai_provider)

    config = config or LlmConfig()
    base_url = normalize_base_url(base_url)

    strategy, pages = await _render_pages(base_url, renderer, config, sitemap_url, limit, concurrency)
    pages = [apply_override(page, config.overrides) for page in pages]
    if ai_provider:
        pages = await _enrich(pages, ai_provider)

    site_name, site_description = resolve_site_metadata(pages, base_url, config)
    return GeneratedSite(
        strategy=strategy,
        site_name=site_name,
        site_description=site_description,
        pages=pages,
        llm_txt=format_llm_txt(site_name, site_description, pages, generated_at),
        llm_full_txt=format_llm_full_txt(site_name, site_description, pages, generated_at),
    )
