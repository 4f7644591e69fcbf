from bs4 import BeautifulSoup, Comment

# Tags whose entire subtree is page chrome or scripting rather than content
_REMOVE_TAGS = [
    "script",
    "style",
    "noscript",
    "nav",
    "footer",
    "header",
    "aside",
]

# ARIA landmark roles that mark navigation and site chrome
_REMOVE_ROLES = {"navigation", "banner", "contentinfo"}


def _has_chrome_role(tag) -> bool:
    role = tag.get("role")
    return bool(role) and str(role).strip().lower() in _REMOVE_ROLES


def sanitize(html: str) -> BeautifulSoup:
    """Parse *html* and strip non-content elements, returning the cleaned tree.

    Removes scripts, styles, ``<noscript>`` blocks, navigation, headers,
    footers, sidebars, elements whose ``role`` is navigation/banner/
    contentinfo, and HTML comments.  ``<head>`` is left alone so the title
    and meta tags survive.
    """
    soup = BeautifulSoup(html, "lxml")

    for tag in soup.find_all(_REMOVE_TAGS):
        tag.decompose()

    for tag in soup.find_all(_has_chrome_role):
        tag.decompose()

    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()

    return soup
