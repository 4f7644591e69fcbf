"""Tests for sitemap discovery, parsing and index expansion."""

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from app.services.fetcher import validate_url
from app.services.sitemap import (
    SitemapEntry,
    SitemapFetchError,
    discover_sitemap_url,
    fetch_sitemap,
    parse_sitemap_xml,
)

_URLSET_XML = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url>
    <loc>https://example.com/</loc>
    <priority>1.0</priority>
    <lastmod>2024-01-15</lastmod>
  </url>
  <url>
    <loc>https://example.com/about</loc>
    <priority>0.8</priority>
  </url>
  <url>
    <loc>https://example.com/docs</loc>
    <priority>0.9</priority>
    <lastmod>2024-02-01</lastmod>
  </url>
  <url>
    <loc>https://example.com/blog/post-1</loc>
    <priority>0.5</priority>
  </url>
</urlset>"""

_EMPTY_URLSET = '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"></urlset>'


def _status_error(url: str, status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", url)
    return httpx.HTTPStatusError(
        f"HTTP {status}", request=request, response=httpx.Response(status, request=request)
    )


def _index(*child_urls: str) -> str:
    children = "".join(f"<sitemap><loc>{url}</loc></sitemap>" for url in child_urls)
    return f'<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{children}</sitemapindex>'


def _urlset(*locs: str) -> str:
    urls = "".join(f"<url><loc>{loc}</loc></url>" for loc in locs)
    return f'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{urls}</urlset>'


def _parse(xml: str, origin: str = "", limit: int = 50):
    return asyncio.run(parse_sitemap_xml(xml, origin, limit))


# ---------------------------------------------------------------------------
# urlset parsing
# ---------------------------------------------------------------------------

class TestParseUrlset:
    def test_parses_all_urls(self):
        assert len(_parse(_URLSET_XML)) == 4

    def test_extracts_loc_values(self):
        urls = [e.url for e in _parse(_URLSET_XML)]
        assert "https://example.com/" in urls
        assert "https://example.com/about" in urls
        assert "https://example.com/docs" in urls

    def test_sorts_by_priority_descending(self):
        entries = _parse(_URLSET_XML)
        assert [e.priority for e in entries] == [1.0, 0.9, 0.8, 0.5]

    def test_ties_keep_document_order(self):
        xml = _urlset(
            "https://example.com/a",
            "https://example.com/b",
            "https://example.com/c",
        )
        assert [e.url for e in _parse(xml)] == [
            "https://example.com/a",
            "https://example.com/b",
            "https://example.com/c",
        ]

    def test_extracts_lastmod_when_present(self):
        entries = {e.url: e for e in _parse(_URLSET_XML)}
        assert entries["https://example.com/"].lastmod == "2024-01-15"
        assert entries["https://example.com/about"].lastmod is None

    def test_defaults_priority_to_half(self):
        entries = _parse(_urlset("https://example.com/page"))
        assert entries == [SitemapEntry(url="https://example.com/page", priority=0.5)]

    def test_unparseable_priority_defaults_to_half(self):
        xml = (
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
            "<url><loc>https://example.com/x</loc><priority>high</priority></url>"
            "</urlset>"
        )
        assert _parse(xml)[0].priority == 0.5

    def test_skips_url_without_loc(self):
        xml = (
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
            "<url><priority>1.0</priority></url>"
            "<url><loc>https://example.com/valid</loc></url>"
            "</urlset>"
        )
        entries = _parse(xml)
        assert len(entries) == 1
        assert entries[0].url == "https://example.com/valid"

    def test_respects_limit(self):
        assert len(_parse(_URLSET_XML, limit=2)) == 2

    def test_empty_urlset(self):
        assert _parse(_EMPTY_URLSET) == []

    def test_sitemap_without_namespace(self):
        xml = "<urlset><url><loc>https://example.com/plain</loc></url></urlset>"
        assert [e.url for e in _parse(xml)] == ["https://example.com/plain"]

    def test_relative_loc_resolved_against_origin(self):
        entries = _parse(_urlset("/relative/page"), origin="https://example.com")
        assert entries[0].url == "https://example.com/relative/page"

    def test_fragment_is_stripped(self):
        entries = _parse(_urlset("https://example.com/page#section"))
        assert entries[0].url == "https://example.com/page"

    def test_unparseable_child_loc_is_skipped(self):
        async def validating_fetch(url, *args, **kwargs):
            validate_url(url)
            return _urlset("https://example.com/kept")

        with patch("app.services.sitemap.fetch_url", new=AsyncMock(side_effect=validating_fetch)), patch(
            "app.services.fetcher._is_private_address", return_value=False
        ):
            entries = _parse(
                _index("https://example.com/bad\x7f.xml", "https://example.com/good.xml"),
                "https://example.com",
            )

        assert [e.url for e in entries] == ["https://example.com/kept"]

    def test_malformed_xml_returns_empty(self):
        assert _parse("<urlset><url><loc>broken") == []


# ---------------------------------------------------------------------------
# sitemapindex expansion
# ---------------------------------------------------------------------------

class TestParseSitemapIndex:
    def test_fetches_child_sitemaps(self):
        child = (
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
            "<url><loc>https://example.com/page-1</loc><priority>0.8</priority></url>"
            "<url><loc>https://example.com/page-2</loc><priority>0.7</priority></url>"
            "</urlset>"
        )
        with patch("app.services.sitemap.fetch_url", new=AsyncMock(return_value=child)) as mock:
            entries = _parse(_index("https://example.com/sitemap-posts.xml"), "https://example.com")

        assert [e.url for e in entries] == ["https://example.com/page-1", "https://example.com/page-2"]
        assert mock.await_args.args[0] == "https://example.com/sitemap-posts.xml"

    def test_broken_child_yields_empty_result(self):
        with patch(
            "app.services.sitemap.fetch_url",
            new=AsyncMock(side_effect=httpx.ConnectError("Network error")),
        ):
            entries = _parse(_index("https://example.com/broken.xml"), "https://example.com")

        assert entries == []

    def test_child_http_error_is_skipped(self):
        url = "https://example.com/missing.xml"
        with patch(
            "app.services.sitemap.fetch_url",
            new=AsyncMock(side_effect=_status_error(url, 404)),
        ):
            assert _parse(_index(url), "https://example.com") == []

    def test_siblings_of_broken_child_are_kept(self):
        with patch(
            "app.services.sitemap.fetch_url",
            new=AsyncMock(
                side_effect=[
                    httpx.ReadTimeout("timed out"),
                    _urlset("https://example.com/kept"),
                ]
            ),
        ):
            entries = _parse(
                _index("https://example.com/a.xml", "https://example.com/b.xml"),
                "https://example.com",
            )

        assert [e.url for e in entries] == ["https://example.com/kept"]

    def test_limit_is_shared_across_children(self):
        first = _urlset("https://example.com/1", "https://example.com/2")
        second = _urlset("https://example.com/3", "https://example.com/4")
        third = _urlset("https://example.com/5")
        mock = AsyncMock(side_effect=[first, second, third])
        with patch("app.services.sitemap.fetch_url", new=mock):
            entries = _parse(
                _index(
                    "https://example.com/a.xml",
                    "https://example.com/b.xml",
                    "https://example.com/c.xml",
                ),
                "https://example.com",
                limit=3,
            )

        assert [e.url for e in entries] == [
            "https://example.com/1",
            "https://example.com/2",
            "https://example.com/3",
        ]
        # The third child is never fetched once the budget is spent
        assert mock.await_count == 2

    def test_self_referencing_index_terminates(self):
        url = "https://example.com/sitemap_index.xml"
        with patch("app.services.sitemap.fetch_url", new=AsyncMock(return_value=_index(url))):
            assert _parse(_index(url), "https://example.com") == []


# ---------------------------------------------------------------------------
# fetch_sitemap
# ---------------------------------------------------------------------------

class TestFetchSitemap:
    def test_fetches_and_parses(self):
        xml = _urlset("https://example.com/")
        with patch("app.services.sitemap.fetch_url", new=AsyncMock(return_value=xml)):
            entries = asyncio.run(fetch_sitemap("https://example.com/sitemap.xml"))

        assert [e.url for e in entries] == ["https://example.com/"]

    def test_http_error_raises_with_status(self):
        url = "https://example.com/sitemap.xml"
        with patch(
            "app.services.sitemap.fetch_url",
            new=AsyncMock(side_effect=_status_error(url, 404)),
        ):
            with pytest.raises(SitemapFetchError) as excinfo:
                asyncio.run(fetch_sitemap(url))

        assert excinfo.value.status_code == 404
        assert "404" in str(excinfo.value)

    def test_network_error_propagates(self):
        with patch(
            "app.services.sitemap.fetch_url",
            new=AsyncMock(side_effect=httpx.ConnectError("refused")),
        ):
            with pytest.raises(httpx.ConnectError):
                asyncio.run(fetch_sitemap("https://example.com/sitemap.xml"))


# ---------------------------------------------------------------------------
# discover_sitemap_url
# ---------------------------------------------------------------------------

class TestDiscoverSitemapUrl:
    def test_prefers_robots_txt_declaration(self):
        mock = AsyncMock(
            side_effect=[
                "User-agent: *\nSitemap: https://example.com/custom-sitemap.xml",
                _EMPTY_URLSET,
            ]
        )
        with patch("app.services.sitemap.fetch_url", new=mock):
            url = asyncio.run(discover_sitemap_url("https://example.com"))

        assert url == "https://example.com/custom-sitemap.xml"
        assert mock.await_args_list[0].args[0] == "https://example.com/robots.txt"

    def test_robots_directive_is_case_insensitive(self):
        with patch(
            "app.services.sitemap.fetch_url",
            new=AsyncMock(side_effect=["sitemap: https://example.com/lower.xml", _EMPTY_URLSET]),
        ):
            url = asyncio.run(discover_sitemap_url("https://example.com"))

        assert url == "https://example.com/lower.xml"

    def test_falls_back_to_sitemap_xml(self):
        with patch(
            "app.services.sitemap.fetch_url",
            new=AsyncMock(side_effect=["User-agent: *\nDisallow: /admin", _EMPTY_URLSET]),
        ):
            url = asyncio.run(discover_sitemap_url("https://example.com"))

        assert url == "https://example.com/sitemap.xml"

    def test_unreachable_robots_sitemap_moves_to_next_candidate(self):
        declared = "https://example.com/gone.xml"
        with patch(
            "app.services.sitemap.fetch_url",
            new=AsyncMock(
                side_effect=[
                    f"Sitemap: {declared}",
                    _status_error(declared, 404),
                    _EMPTY_URLSET,
                ]
            ),
        ):
            url = asyncio.run(discover_sitemap_url("https://example.com"))

        assert url == "https://example.com/sitemap.xml"

    def test_html_response_is_not_a_sitemap(self):
        with patch(
            "app.services.sitemap.fetch_url",
            new=AsyncMock(
                side_effect=[
                    "User-agent: *",
                    "<html><body>Soft 404</body></html>",
                    _index("https://example.com/posts.xml"),
                ]
            ),
        ):
            url = asyncio.run(discover_sitemap_url("https://example.com"))

        assert url == "https://example.com/sitemap_index.xml"

    def test_returns_none_when_nothing_found(self):
        with patch(
            "app.services.sitemap.fetch_url",
            new=AsyncMock(side_effect=_status_error("https://example.com", 404)),
        ):
            assert asyncio.run(discover_sitemap_url("https://example.com")) is None

    def test_returns_none_on_total_network_failure(self):
        with patch(
            "app.services.sitemap.fetch_url",
            new=AsyncMock(side_effect=httpx.ConnectError("Network error")),
        ):
            assert asyncio.run(discover_sitemap_url("https://example.com")) is None

    def test_unparseable_robots_sitemap_moves_to_next_candidate(self):
        responses = {
            "https://example.com/robots.txt": "Sitemap: https://example.com/s\x7f.xml",
            "https://example.com/sitemap.xml": _EMPTY_URLSET,
        }

        async def validating_fetch(url, *args, **kwargs):
            validate_url(url)
            return responses[url]

        with patch("app.services.sitemap.fetch_url", new=AsyncMock(side_effect=validating_fetch)), patch(
            "app.services.fetcher._is_private_address", return_value=False
        ):
            url = asyncio.run(discover_sitemap_url("https://example.com"))

        assert url == "https://example.com/sitemap.xml"

    def test_handles_trailing_slash_and_path_in_base_url(self):
        with patch(
            "app.services.sitemap.fetch_url",
            new=AsyncMock(side_effect=["User-agent: *", _EMPTY_URLSET]),
        ):
            url = asyncio.run(discover_sitemap_url("https://example.com/docs/"))

        assert url == "https://example.com/sitemap.xml"
