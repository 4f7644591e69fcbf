from typing import Literal, Optional

from pydantic import BaseModel, Field, HttpUrl

from app.models.config import LlmConfig


class GenerateRequest(BaseModel):
    url: HttpUrl
    sitemap: Optional[HttpUrl] = Field(
        default=None,
        description="Use this sitemap instead of auto-discovery. HTTP errors from it are reported, not skipped.",
    )
    limit: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Maximum number of pages to process (1–500).",
    )
    concurrency: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Number of pages fetched in parallel per batch (1–20).",
    )
    renderer: Literal["http", "browser", "firecrawl"] = "http"
    """How pages are fetched.

    ``"http"`` (default)
        Plain HTTP fetch and HTML extraction.

    ``"browser"``
        Render each page in headless Chromium before extraction.

    ``"firecrawl"``
        Delegate crawling and rendering to the Firecrawl API
        (requires ``FIRECRAWL_API_KEY`` on the server).
    """
    ai_provider: Optional[Literal["claude", "openai", "gemini", "perplexity", "grok", "deepseek"]] = Field(
        default=None,
        description="Rewrite page descriptions with this AI provider (its API key must be set on the server).",
    )
    config: LlmConfig = Field(
        default_factory=LlmConfig,
        description="Same shape as llm.config.json: siteName, siteDescription, exclude, overrides.",
    )
