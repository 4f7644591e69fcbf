import re

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from app.models.page import PageRecord
from app.services.sanitizer import sanitize

MAX_CONTENT_LENGTH = 3000

_WHITESPACE_RE = re.compile(r"\s+")

# Elements that start a new line of text; inline elements join their neighbours
_BLOCK_TAGS = frozenset(
    {
        "address", "article", "blockquote", "br", "dd", "div", "dl", "dt",
        "figcaption", "figure", "h1", "h2", "h3", "h4", "h5", "h6", "hr",
        "li", "main", "ol", "p", "pre", "section", "table", "td", "th",
        "tr", "ul",
    }
)

# Main-content containers, most specific first
_MAIN_CONTENT_SELECTORS = (
    "main",
    "article",
    '[role="main"]',
    ".content",
    "#content",
    ".main",
    "#main",
    ".post",
    ".article",
)


def _text(node) -> str:
    return node.get_text().strip() if node else ""


def _extract_description(soup: BeautifulSoup) -> str:
    for attrs in ({"name": "description"}, {"property": "og:description"}):
        meta = soup.find("meta", attrs=attrs)
        if meta and str(meta.get("content") or "").strip():
            return str(meta["content"]).strip()
    return ""


def _find_main_content(soup: BeautifulSoup):
    """Return the most likely main-content element, falling back to <body>."""
    for selector in _MAIN_CONTENT_SELECTORS:
        node = soup.select_one(selector)
        if node:
            return node
    return soup.find("body") or soup


def _is_block(node) -> bool:
    return isinstance(node, Tag) and node.name in _BLOCK_TAGS


def _content_text(node) -> str:
    """Text of *node* with a space only at block boundaries."""
    parts = []
    for element in node.descendants:
        if _is_block(element):
            parts.append(" ")
        elif isinstance(element, NavigableString) and not isinstance(element, PreformattedString):
            if _is_block(element.previous_sibling):
                parts.append(" ")
            parts.append(str(element))
    return "".join(parts)


def normalize_content(text: str) -> str:
    """Collapse whitespace and hard-cap the result at MAX_CONTENT_LENGTH characters."""
    return _WHITESPACE_RE.sub(" ", text).strip()[:MAX_CONTENT_LENGTH]


def extract_page_data(url: str, html: str) -> PageRecord:
    """Build a :class:`PageRecord` from raw page markup."""
    soup = sanitize(html)

    return PageRecord(
        url=url,
        title=_text(soup.find("title")),
        description=_extract_description(soup),
        h1=_text(soup.find("h1")),
        content=normalize_content(_content_text(_find_main_content(soup))),
    )


def get_page_title(page: PageRecord) -> str:
    return page.title or page.h1 or page.url


def get_page_description(page: PageRecord) -> str:
    return page.description or page.h1 or page.title or page.url
