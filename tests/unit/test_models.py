"""Unit tests for article identifiers, the stored document layout and summaries."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from kstack.models.article import ArticleDocument, article_identifier, article_slug
from kstack.models.pipeline import ArticleFailure, DownloadSummary
from kstack.utils.errors import InvalidArticleUrlError


class TestIdentifiers:
    @pytest.mark.parametrize(
        ("url", "slug"),
        [
            ("https://a.substack.com/p/hello-world", "hello-world"),
            ("https://substack.com/home/post/p-12345", "12345"),
            ("https://a.substack.com/cp/98765", "98765"),
            ("https://a.substack.com/cp-abc", "abc"),
            ("https://a.substack.com/p/one/p/two", "one/p/two"),
        ],
    )
    def test_slug_follows_first_marker(self, url: str, slug: str) -> None:
        assert article_slug(url) == slug

    def test_identifier(self) -> None:
        assert article_identifier("a", "https://a.substack.com/p/hello") == "a/hello"

    @pytest.mark.parametrize("url", ["https://a.substack.com/about", "https://a.substack.com/p/"])
    def test_url_without_slug_is_rejected(self, url: str) -> None:
        with pytest.raises(InvalidArticleUrlError):
            article_slug(url)


class TestArticleDocument:
    def _document(self, **overrides) -> ArticleDocument:
        fields = {
            "url": "https://a.substack.com/p/hello",
            "title": "Hello",
            "subtitle": "World",
            "date": "Mar 3, 2024",
            "author": "Ann",
            "body": "\n\nBody text",
            "scraped_at": datetime(2024, 3, 4, 5, 6, 7, tzinfo=timezone.utc),
        }
        fields.update(overrides)
        return ArticleDocument(**fields)

    def test_markdown_layout(self) -> None:
        assert self._document().to_markdown() == (
            "Original URL: https://a.substack.com/p/hello\n"
            "Scrape time: 2024-03-04T05:06:07+00:00\n"
            "Author: Ann\n"
            "\n"
            "# Hello\n"
            "## World\n"
            "### Mar 3, 2024\n"
            "\n"
            "Body text\n"
        )

    def test_subtitle_line_is_omitted_when_absent(self) -> None:
        markdown = self._document(subtitle=None).to_markdown()
        assert "\n## " not in markdown
        assert "# Hello\n### Mar 3, 2024" in markdown

    def test_document_is_frozen(self) -> None:
        document = self._document()
        with pytest.raises(ValidationError):
            document.title = "Other"


class TestDownloadSummary:
    def test_merge_concatenates(self) -> None:
        first = DownloadSummary(discovered=2, stored=["a/1"], skipped=["a/2"])
        second = DownloadSummary(
            discovered=1, failed=[ArticleFailure(url="https://b/p/x", error="boom")]
        )
        merged = first.merge(second)
        assert merged.discovered == 3
        assert merged.stored == ["a/1"]
        assert merged.skipped == ["a/2"]
        assert [f.url for f in merged.failed] == ["https://b/p/x"]
