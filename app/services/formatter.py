"""Render page records as ``llm.txt`` / ``llm-full.txt`` documents.

Everything here is pure: the same pages, site metadata and generation date
always produce the same text.

Pages are first split into *key pages* (home, pricing, legal, support,
about) and the rest.  The rest are grouped under a topic label taken from
``_SECTION_PATTERNS`` or, failing that, from the first URL path segment.
Because the key split happens before labelling, every page ends up in
exactly one section.
"""

import re
from datetime import date, datetime, timezone
from typing import Dict, List, NamedTuple, Optional, Pattern, Sequence, Tuple, Union
from urllib.parse import unquote, urlparse

from app.models.page import PageRecord
from app.services.extractor import get_page_description, get_page_title

KEY_PAGES_LABEL = "Key Pages"
GUIDELINES_LABEL = "Answering Guidelines"

GUIDELINES_CLOSING_LINE = (
    "- Do not guess prices, license terms, or legal details. "
    "Always cite the source pages listed above."
)

_KEY_PAGE_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"^/$"),
    re.compile(r"/pricing\b", re.IGNORECASE),
    re.compile(r"/(?:license|legal|terms|tos)\b", re.IGNORECASE),
    re.compile(r"/(?:help|support|faq|contact)\b", re.IGNORECASE),
    re.compile(r"/about\b", re.IGNORECASE),
)

# Ordered: the first matching label wins
_SECTION_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("Documentation", re.compile(r"/(?:docs?|documentation|guides?|tutorials?|reference)\b", re.IGNORECASE)),
    ("Blog", re.compile(r"/(?:blog|posts?|articles?|news|insights)\b", re.IGNORECASE)),
    ("Pricing", re.compile(r"/(?:pricing|plans)\b", re.IGNORECASE)),
    ("Help & Support", re.compile(r"/(?:help|support|faq|contact)\b", re.IGNORECASE)),
    ("Legal", re.compile(r"/(?:legal|terms|privacy|license|tos|cookies)\b", re.IGNORECASE)),
    ("About", re.compile(r"/(?:about|team|company|careers)\b", re.IGNORECASE)),
    ("API & Reference", re.compile(r"/(?:api|sdk|changelog)\b", re.IGNORECASE)),
)

# (pattern, line prefix) for each guideline topic, in output order
_GUIDELINE_TOPICS: Tuple[Tuple[Pattern[str], str], ...] = (
    (re.compile(r"/pricing\b", re.IGNORECASE), "For pricing questions, refer to"),
    (
        re.compile(r"/(?:license|licensing|legal|terms|tos)\b", re.IGNORECASE),
        "For licensing and legal questions, refer to",
    ),
    (re.compile(r"/(?:help|support|faq)\b", re.IGNORECASE), "For help and support questions, refer to"),
)

_TITLE_SEPARATORS = "|\\-–—"

# "Explore 7,195,729 royalty-free ..." stock-site inventory boilerplate
_INVENTORY_PREFIX_RE = re.compile(
    r"^\s*(?:explore|browse|download|find|discover)\s+\d{1,3}(?:,\d{3})*\+?\s+royalty-free\s+",
    re.IGNORECASE,
)
# Dash-introduced tail clause such as "available in multiple formats"
_AVAILABLE_SUFFIX_RE = re.compile(
    r"\s*[–—]\s*([^–—]*\bavailable\b[^–—]*)$",
    re.IGNORECASE,
)
_MAX_SUFFIX_LENGTH = 80


class Section(NamedTuple):
    label: str
    pages: List[PageRecord]


def _path(url: str) -> str:
    return urlparse(url).path or "/"


def clean_title(title: str, site_name: str) -> str:
    """Strip one trailing ``| Site`` / ``- Site`` / ``— Site`` suffix from *title*."""
    if not title or not site_name:
        return title
    suffix = re.compile(
        rf"\s*[{_TITLE_SEPARATORS}]\s*{re.escape(site_name)}\s*$", re.IGNORECASE
    )
    cleaned = suffix.sub("", title, count=1).strip()
    return cleaned or title


def clean_description(description: str) -> str:
    """Remove stock-site boilerplate; never turns a description into an empty string."""
    cleaned = _INVENTORY_PREFIX_RE.sub("", description, count=1)
    match = _AVAILABLE_SUFFIX_RE.search(cleaned)
    if match and len(match.group(1).strip()) <= _MAX_SUFFIX_LENGTH:
        cleaned = cleaned[: match.start()]
    cleaned = cleaned.strip()
    return cleaned or description


def is_key_page(url: str) -> bool:
    path = _path(url)
    return any(pattern.search(path) for pattern in _KEY_PAGE_PATTERNS)


def section_label(url: str) -> str:
    """Topic label for a non-key page."""
    path = _path(url)
    for label, pattern in _SECTION_PATTERNS:
        if pattern.search(path):
            return label

    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return KEY_PAGES_LABEL
    words = [word for word in re.split(r"[-_\s]+", unquote(segments[0])) if word]
    if not words:
        return KEY_PAGES_LABEL
    return " ".join(word[:1].upper() + word[1:] for word in words)


def group_sections(pages: Sequence[PageRecord]) -> List[Section]:
    """Partition *pages* into sections, ``Key Pages`` first.

    The key-page section is present whenever it has pages, and also when
    *pages* is empty so the document always has a body heading.
    """
    key_pages: List[PageRecord] = []
    topics: Dict[str, List[PageRecord]] = {}

    for page in pages:
        if is_key_page(page.url):
            key_pages.append(page)
            continue
        label = section_label(page.url)
        if label == KEY_PAGES_LABEL:
            key_pages.append(page)
        else:
            topics.setdefault(label, []).append(page)

    sections: List[Section] = []
    if key_pages or not pages:
        sections.append(Section(KEY_PAGES_LABEL, key_pages))
    sections.extend(Section(label, members) for label, members in topics.items())
    return sections


def build_guidelines(pages: Sequence[PageRecord]) -> List[str]:
    """Return the Answering Guidelines lines, or an empty list when none apply."""
    lines: List[str] = []
    for pattern, prefix in _GUIDELINE_TOPICS:
        match = next((page for page in pages if pattern.search(_path(page.url))), None)
        if match is not None:
            lines.append(f"- {prefix} {match.url}")
    if not lines:
        return []
    lines.append(GUIDELINES_CLOSING_LINE)
    return lines


def _generation_date(generated_at: Optional[Union[date, datetime]]) -> str:
    if generated_at is None:
        return datetime.now(timezone.utc).date().isoformat()
    if isinstance(generated_at, datetime):
        if generated_at.tzinfo is not None:
            generated_at = generated_at.astimezone(timezone.utc)
        return generated_at.date().isoformat()
    return generated_at.isoformat()


def _page_line(page: PageRecord, site_name: str) -> str:
    title = clean_title(get_page_title(page), site_name)
    description = clean_description(get_page_description(page))
    return f"- [{title}]({page.url}): {description}"


def format_llm_txt(
    site_name: str,
    site_description: str,
    pages: Sequence[PageRecord],
    generated_at: Optional[Union[date, datetime]] = None,
) -> str:
    """Render the ``llm.txt`` summary document."""
    lines: List[str] = [
        f"# {site_name}",
        "",
        f"> {site_description}",
        "",
        f"_Generated: {_generation_date(generated_at)}_",
        "",
    ]

    for section in group_sections(pages):
        lines.append(f"## {section.label}")
        lines.append("")
        if section.pages:
            lines.extend(_page_line(page, site_name) for page in section.pages)
            lines.append("")

    guidelines = build_guidelines(pages)
    if guidelines:
        lines.append(f"## {GUIDELINES_LABEL}")
        lines.append("")
        lines.extend(guidelines)
        lines.append("")

    return "\n".join(lines)


def format_llm_full_txt(
    site_name: str,
    site_description: str,
    pages: Sequence[PageRecord],
    generated_at: Optional[Union[date, datetime]] = None,
) -> str:
    """Render ``llm-full.txt``: the summary followed by each page's content."""
    parts: List[str] = [
        format_llm_txt(site_name, site_description, pages, generated_at),
        "---",
        "",
    ]

    for page in pages:
        if not page.content:
            continue
        parts.extend(
            [
                f"## {clean_title(get_page_title(page), site_name)}",
                "",
                f"URL: {page.url}",
                "",
                page.content,
                "",
                "---",
                "",
            ]
        )

    return "\n".join(parts)
