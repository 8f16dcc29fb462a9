"""Tests for content link extraction."""

import pytest

from linksignal.ingestion.extractor import extract_links_from_html, should_skip_link


class TestShouldSkipLink:
    """Tests for should_skip_link."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/photo.JPG",
            "https://example.com/pic.png?w=600",
            "https://substackcdn.com/image/fetch/abc",
            "https://example.substack.com/subscribe",
            "https://example.com/account/",
            "https://example.com/unsubscribe?id=1",
            "https://foo.us1.list-manage.com/unsubscribe?u=1",
            "https://www.linkedin.com/in/someone",
            "https://twitter.com/someone",
            "https://x.com/someone",
            "https://www.instagram.com/someone/",
            "https://example.substack.com/p/my-post",
            "https://link.mail.beehiiv.com/whatever",
            "https://mailchi.mp/abc/issue-1",
        ],
    )
    def test_skipped(self, url: str) -> None:
        assert should_skip_link(url)

    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/article",
            "https://twitter.com/someone/status/123",
            "https://x.com/someone/status/123",
            "https://ax.com/page",
            "https://foo.us1.list-manage.com/track/click?u=1&id=2",
            "https://email.mg2.substack.com/c/eJx",
            "https://www.instagram.com/p/Cxyz/",
            "https://bit.ly/3abc",
        ],
    )
    def test_kept(self, url: str) -> None:
        assert not should_skip_link(url)


class TestExtractLinksFromHtml:
    """Tests for extract_links_from_html."""

    def test_extracts_in_order_without_duplicates(self) -> None:
        html = """
        <p>Read <a href="https://example.com/b">this</a>,
        <a href=" https://example.com/a ">that</a> and
        <a href="https://example.com/b">this again</a>.</p>
        """
        assert extract_links_from_html(html) == [
            "https://example.com/b",
            "https://example.com/a",
        ]

    def test_drops_non_http_and_relative(self) -> None:
        html = """
        <a href="mailto:me@example.com">mail</a>
        <a href="/relative">rel</a>
        <a href="#top">top</a>
        <a>no href</a>
        <a href="HTTPS://Example.com/upper">ok</a>
        """
        assert extract_links_from_html(html) == ["HTTPS://Example.com/upper"]

    def test_drops_plumbing_links(self) -> None:
        html = """
        <a href="https://nytimes.com/story">story</a>
        <a href="https://example.substack.com/subscribe">Subscribe</a>
        <a href="https://substackcdn.com/image/x.png">img</a>
        """
        assert extract_links_from_html(html) == ["https://nytimes.com/story"]

    @pytest.mark.parametrize("content", ["", "plain text without links"])
    def test_no_links(self, content: str) -> None:
        assert extract_links_from_html(content) == []
