from typing import List, Literal

from pydantic import BaseModel

from app.models.page import PageRecord


class GenerateResponse(BaseModel):
    site_url: str
    strategy: Literal["sitemap", "crawler", "firecrawl"]
    site_name: str
    site_description: str
    pages_found: int
    pages: List[PageRecord]
    llm_txt: str
    llm_full_txt: str
