from pydantic import BaseModel


class PageRecord(BaseModel):
    """Normalised data extracted from one fetched page.

    Every renderer (plain HTTP, Firecrawl, headless browser) produces this
    same shape, so the formatter never needs to know which one was used.
    """

    url: str
    title: str = ""
    description: str = ""
    h1: str = ""
    content: str = ""  # whitespace-collapsed body text, capped at MAX_CONTENT_LENGTH
