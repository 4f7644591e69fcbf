"""Firecrawl cloud-rendering client.

Starts a crawl job, polls it until it completes and maps the returned pages
to :class:`PageRecord`.
"""

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from app.models.page import PageRecord
from app.services.extractor import MAX_CONTENT_LENGTH

logger = logging.getLogger(__name__)

FIRECRAWL_API = "https://api.firecrawl.dev/v1"
API_KEY_ENV_VAR = "FIRECRAWL_API_KEY"

_REQUEST_TIMEOUT = 30
_POLL_INTERVAL = 2.0
_MAX_POLL_ATTEMPTS = 150  # 5 minutes at 2 s intervals

_MARKDOWN_H1_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)


class FirecrawlError(RuntimeError):
    """The Firecrawl API refused the job, failed it, or never finished it."""


async def _request(
    method: str, url: str, api_key: str, payload: Optional[Dict[str, Any]] = None
) -> httpx.Response:
    async with httpx.AsyncClient(timeout=_REQUEST_TIMEOUT) as client:
        return await client.request(
            method,
            url,
            headers={"Authorization": f"Bearer {api_key}"},
            json=payload,
        )


def _to_page_record(item: Dict[str, Any]) -> PageRecord:
    meta = item.get("metadata") or {}
    markdown = item.get("markdown") or ""
    h1_match = _MARKDOWN_H1_RE.search(markdown)
    return PageRecord(
        url=item.get("url") or meta.get("sourceURL") or "",
        title=meta.get("ogTitle") or meta.get("title") or "",
        description=meta.get("ogDescription") or meta.get("description") or "",
        h1=h1_match.group(1).strip() if h1_match else "",
        content=markdown[:MAX_CONTENT_LENGTH],
    )


async def _poll(job_id: str, api_key: str, poll_interval: float) -> List[Dict[str, Any]]:
    pages: List[Dict[str, Any]] = []

    for attempt in range(_MAX_POLL_ATTEMPTS):
        if poll_interval > 0:
            await asyncio.sleep(poll_interval)

        resp = await _request("GET", f"{FIRECRAWL_API}/crawl/{job_id}", api_key)
        if not resp.is_success:
            raise FirecrawlError(f"Firecrawl poll error {resp.status_code}")

        status = resp.json()
        if status.get("status") == "failed":
            raise FirecrawlError("Firecrawl crawl job failed")
        pages.extend(status.get("data") or [])
        if status.get("status") == "completed":
            logger.info("Firecrawl job %s completed after %d polls", job_id, attempt + 1)
            return pages

    raise FirecrawlError("Firecrawl crawl timed out after 5 minutes")


async def crawl_with_firecrawl(
    url: str,
    api_key: str,
    limit: int = 50,
    poll_interval: float = _POLL_INTERVAL,
) -> List[PageRecord]:
    """Crawl *url* through Firecrawl and return at most *limit* page records.

    Raises:
        FirecrawlError: on any API error status, a failed job, or a timeout.
        httpx.HTTPError: on network failures talking to the API.
    """
    resp = await _request(
        "POST",
        f"{FIRECRAWL_API}/crawl",
        api_key,
        {"url": url, "limit": limit, "scrapeOptions": {"formats": ["markdown"]}},
    )
    if not resp.is_success:
        raise FirecrawlError(f"Firecrawl error {resp.status_code}: {resp.text}")

    job_id = resp.json().get("id")
    if not job_id:
        raise FirecrawlError("Firecrawl did not return a crawl job id")

    logger.info("Firecrawl job %s started for %s", job_id, url)
    items = await _poll(job_id, api_key, poll_interval)
    records = [_to_page_record(item) for item in items[:limit]]
    return [record for record in records if record.url]
