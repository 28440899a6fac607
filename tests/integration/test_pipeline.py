"""Integration tests for ArchivePipeline with real services and a routed fetcher.

Discovery, scraping, conversion and storage all run for real; only HTTP is
replaced by a URL-to-body routing table and sleeps return immediately.
"""

from __future__ import annotations

import json

import pytest

from kstack.models.article import article_identifier
from kstack.pipeline.orchestrator import ArchivePipeline
from kstack.providers.storage.content_store import ContentStore
from kstack.services.article_scraper import ArticleScraper
from kstack.services.discovery_service import (
    ARCHIVE_PAGE_SIZE,
    ARCHIVE_URL,
    LEADERBOARD_URL,
    DiscoveryService,
)
from tests.conftest import article_page


def _archive_url(subdomain: str, offset: int = 0) -> str:
    return ARCHIVE_URL.format(subdomain=subdomain, offset=offset, limit=ARCHIVE_PAGE_SIZE)


def _article_url(subdomain: str, slug: str) -> str:
    return f"https://{subdomain}.substack.com/p/{slug}"


def _archive(subdomain: str, *slugs: str) -> dict[str, str]:
    """Routes for a one-page archive listing *slugs*, followed by an empty page."""
    posts = [
        {"canonical_url": _article_url(subdomain, slug), "audience": "everyone", "type": "newsletter"}
        for slug in slugs
    ]
    return {
        _archive_url(subdomain): json.dumps(posts),
        _archive_url(subdomain, ARCHIVE_PAGE_SIZE): "[]",
    }


def _pipeline(fetcher, store: ContentStore, no_sleep) -> ArchivePipeline:
    return ArchivePipeline(
        discovery=DiscoveryService(fetcher, sleep=no_sleep),
        scraper=ArticleScraper(fetcher),
        store=store,
        sleep=no_sleep,
    )


def _article_fetches(fetcher) -> list[str]:
    return [c.args[0] for c in fetcher.fetch.await_args_list if "/p/" in c.args[0]]


# ======================================================================
# Author downloads
# ======================================================================


class TestDownloadAuthor:
    @pytest.mark.asyncio
    async def test_stores_every_article(self, routed_fetcher, store, no_sleep) -> None:
        routes = {
            **_archive("alpha", "first", "second"),
            _article_url("alpha", "first"): article_page("<p>One</p>", title="First"),
            _article_url("alpha", "second"): article_page("<p>Two</p>", title="Second"),
        }
        fetcher = routed_fetcher(routes)

        summary = await _pipeline(fetcher, store, no_sleep).download_author("alpha", 10)

        assert summary.discovered == 2
        assert summary.stored == ["alpha/first", "alpha/second"]
        assert summary.failed == []
        stored = store.read("alpha/first")
        assert "# First\n" in stored
        assert stored.endswith("\n\nOne\n")

    @pytest.mark.asyncio
    async def test_one_broken_article_does_not_stop_the_author(self, routed_fetcher, store, no_sleep) -> None:
        routes = {
            **_archive("alpha", "good", "broken", "later"),
            _article_url("alpha", "good"): article_page("<p>Fine</p>"),
            _article_url("alpha", "broken"): article_page("<p>x</p><canvas></canvas>"),
            _article_url("alpha", "later"): article_page("<p>Also fine</p>"),
        }
        fetcher = routed_fetcher(routes)

        summary = await _pipeline(fetcher, store, no_sleep).download_author("alpha", 10)

        assert summary.stored == ["alpha/good", "alpha/later"]
        assert [f.url for f in summary.failed] == [_article_url("alpha", "broken")]
        assert "canvas" in summary.failed[0].error
        assert not store.exists("alpha/broken")

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_stop_the_author(
        self, routed_fetcher, store, no_sleep, monkeypatch
    ) -> None:
        routes = {
            **_archive("alpha", "broken", "later"),
            _article_url("alpha", "broken"): article_page("<p>Lost</p>"),
            _article_url("alpha", "later"): article_page("<p>Kept</p>"),
        }
        real_write = store.write

        def write(identifier: str, body: str):
            if identifier == "alpha/broken":
                raise OSError("No space left on device")
            return real_write(identifier, body)

        monkeypatch.setattr(store, "write", write)
        fetcher = routed_fetcher(routes)

        summary = await _pipeline(fetcher, store, no_sleep).download_author("alpha", 10)

        assert summary.stored == ["alpha/later"]
        assert [f.url for f in summary.failed] == [_article_url("alpha", "broken")]
        assert "No space left" in summary.failed[0].error

    @pytest.mark.asyncio
    async def test_loosely_typed_embed_fields_are_stored(self, routed_fetcher, store, no_sleep) -> None:
        gallery = (
            "<div class=\"image-gallery-embed\" "
            "data-attrs='{\"gallery\":{\"images\":[],\"caption\":5}}'></div>"
        )
        routes = {
            **_archive("alpha", "gallery", "later"),
            _article_url("alpha", "gallery"): article_page(f"<p>Pics</p>{gallery}"),
            _article_url("alpha", "later"): article_page("<p>Next</p>"),
        }
        fetcher = routed_fetcher(routes)

        summary = await _pipeline(fetcher, store, no_sleep).download_author("alpha", 10)

        assert summary.failed == []
        assert summary.stored == ["alpha/gallery", "alpha/later"]
        assert store.read("alpha/gallery").endswith("Pics\n\n5\n")

    @pytest.mark.asyncio
    async def test_fetch_failure_is_recorded(self, routed_fetcher, store, no_sleep) -> None:
        # The article URL is missing from the routes, so the fetch fails with a 404.
        fetcher = routed_fetcher(_archive("alpha", "gone"))

        summary = await _pipeline(fetcher, store, no_sleep).download_author("alpha", 10)

        assert summary.stored == []
        assert len(summary.failed) == 1
        assert "404" in summary.failed[0].error

    @pytest.mark.asyncio
    async def test_skip_existing_avoids_fetching(self, routed_fetcher, store, no_sleep) -> None:
        routes = {
            **_archive("alpha", "kept"),
            _article_url("alpha", "kept"): article_page("<p>New</p>"),
        }
        store.write(article_identifier("alpha", _article_url("alpha", "kept")), "already here")
        fetcher = routed_fetcher(routes)

        summary = await _pipeline(fetcher, store, no_sleep).download_author("alpha", 10, skip_existing=True)

        assert summary.skipped == ["alpha/kept"]
        assert summary.stored == []
        assert _article_fetches(fetcher) == []
        assert store.read("alpha/kept") == "already here"

    @pytest.mark.asyncio
    async def test_without_skip_existing_articles_are_refetched(self, routed_fetcher, store, no_sleep) -> None:
        routes = {
            **_archive("alpha", "kept"),
            _article_url("alpha", "kept"): article_page("<p>New</p>"),
        }
        store.write("alpha/kept", "stale")
        fetcher = routed_fetcher(routes)

        summary = await _pipeline(fetcher, store, no_sleep).download_author("alpha", 10)

        assert summary.stored == ["alpha/kept"]
        assert store.read("alpha/kept").endswith("\n\nNew\n")


# ======================================================================
# Category downloads
# ======================================================================


class TestDownloadCategory:
    @pytest.mark.asyncio
    async def test_category_skips_existing_and_merges(self, routed_fetcher, store, no_sleep) -> None:
        leaderboard = {
            "items": [
                {"publication": {"subdomain": "alpha", "language": "en"}},
                {"publication": {"subdomain": "beta", "language": "en"}},
            ],
            "more": False,
        }
        routes = {
            LEADERBOARD_URL.format(category_id=96, page=0): json.dumps(leaderboard),
            **_archive("alpha", "a1"),
            **_archive("beta", "b1", "b2"),
            _article_url("alpha", "a1"): article_page("<p>A1</p>"),
            _article_url("beta", "b1"): article_page("<p>B1</p>"),
            _article_url("beta", "b2"): article_page("<p>B2</p>"),
        }
        store.write("beta/b1", "old copy")
        fetcher = routed_fetcher(routes)

        summary = await _pipeline(fetcher, store, no_sleep).download_category(96, 10)

        assert summary.discovered == 3
        assert summary.stored == ["alpha/a1", "beta/b2"]
        assert summary.skipped == ["beta/b1"]
        assert _article_url("beta", "b1") not in _article_fetches(fetcher)

    @pytest.mark.asyncio
    async def test_all_configured_runs_categories_in_order(self, routed_fetcher, store, no_sleep) -> None:
        def board(subdomain: str) -> str:
            return json.dumps({"items": [{"publication": {"subdomain": subdomain, "language": "en"}}]})

        routes = {
            LEADERBOARD_URL.format(category_id=4, page=0): board("alpha"),
            LEADERBOARD_URL.format(category_id=62, page=0): board("beta"),
            **_archive("alpha", "a1"),
            **_archive("beta", "b1"),
            _article_url("alpha", "a1"): article_page("<p>A1</p>"),
            _article_url("beta", "b1"): article_page("<p>B1</p>"),
        }
        fetcher = routed_fetcher(routes)

        summary = await _pipeline(fetcher, store, no_sleep).download_all_configured([4, 62], 10)

        assert summary.stored == ["alpha/a1", "beta/b1"]
        assert store.count() == 2
