"""llm.txt generation endpoint."""

import logging
from typing import Literal

import httpx
from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.models.generate_request import GenerateRequest
from app.models.generate_response import GenerateResponse
from app.services.firecrawl import FirecrawlError
from app.services.pipeline import generate_site
from app.services.sitemap import SitemapFetchError

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter()


@router.post(
    "/generate",
    response_model=GenerateResponse,
    summary="Generate llm.txt and llm-full.txt for a website",
    description=(
        "Discovers the site's pages (sitemap first, link-following crawl as a "
        "fallback), extracts each page and returns the `llm.txt` summary and "
        "the `llm-full.txt` full-content document.\n\n"
        "Pass `?format=txt` or `?format=full` to receive the corresponding "
        "document as plain text instead of JSON."
    ),
)
@limiter.limit("3/minute")
async def generate(
    request: Request,
    body: GenerateRequest,
    format: Literal["json", "txt", "full"] = Query(
        default="json", description="Output format: 'json', 'txt' or 'full'."
    ),
) -> GenerateResponse | PlainTextResponse:
    """Generate the llm.txt documents for *url*."""
    url = str(body.url)
    logger.info(
        "Generate request received",
        extra={"url": url, "limit": body.limit, "renderer": body.renderer},
    )

    try:
        site = await generate_site(
            url,
            config=body.config,
            sitemap_url=str(body.sitemap) if body.sitemap else None,
            limit=body.limit,
            concurrency=body.concurrency,
            renderer=body.renderer,
            ai_provider=body.ai_provider,
        )
    except ValueError as exc:
        logger.warning("Invalid generate request for %s – %s", url, exc)
        raise HTTPException(status_code=400, detail=str(exc))
    except SitemapFetchError as exc:
        logger.error("Sitemap error for %s: %s", url, exc)
        raise HTTPException(
            status_code=502, detail=f"Sitemap returned HTTP {exc.status_code}."
        )
    except (FirecrawlError, httpx.HTTPError, RuntimeError) as exc:
        logger.error("Error generating llm.txt for %s: %s", url, exc)
        raise HTTPException(status_code=502, detail=str(exc))

    if format == "txt":
        return PlainTextResponse(site.llm_txt)
    if format == "full":
        return PlainTextResponse(site.llm_full_txt)

    return GenerateResponse(
        site_url=url,
        strategy=site.strategy,
        site_name=site.site_name,
        site_description=site.site_description,
        pages_found=len(site.pages),
        pages=site.pages,
        llm_txt=site.llm_txt,
        llm_full_txt=site.llm_full_txt,
    )
