"""Archive pipeline: discover, scrape, convert and store articles.

Coordinates the discovery service, the article scraper and the content
store.  Work is organised in three nested scopes:

    download_all_configured  -> every configured category
        download_category    -> every trending publication (skip existing)
            download_author  -> every free article, in discovery order

ARCHITECTURE NOTE:
    Each article is processed as fetch -> convert -> store.  The store write
    happens only after fetch and conversion have both succeeded, so a
    failure or cancellation never leaves a partial file behind.

    A failure inside one article is logged and recorded in the returned
    :class:`DownloadSummary`; the enclosing author or category loop carries
    on with the next article.  Only cancellation propagates.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable

import structlog

from kstack.models.article import ArticleDocument, article_identifier
from kstack.models.pipeline import ArticleFailure, DownloadSummary
from kstack.providers.storage.content_store import ContentStore
from kstack.services.article_scraper import ArticleScraper
from kstack.services.discovery_service import DiscoveryService
from kstack.utils.errors import KstackError
from kstack.utils.logging import get_logger

_DEFAULT_COURTESY_DELAY = 0.75
_DEFAULT_MAX_PER_AUTHOR = 50


class ArchivePipeline:
    """Downloads authors and categories into the content store.

    All collaborators are injected; ``sleep`` is the courtesy-delay hook so
    tests can run without waiting.
    """

    def __init__(
        self,
        discovery: DiscoveryService,
        scraper: ArticleScraper,
        store: ContentStore,
        courtesy_delay: float = _DEFAULT_COURTESY_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._discovery = discovery
        self._scraper = scraper
        self._store = store
        self._courtesy_delay = courtesy_delay
        self._sleep = sleep
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Single article
    # ------------------------------------------------------------------

    async def scrape_article(self, url: str) -> ArticleDocument:
        """Scrape and convert one article without storing it."""
        return await self._scraper.scrape(url)

    # ------------------------------------------------------------------
    # Author
    # ------------------------------------------------------------------

    async def download_author(
        self,
        subdomain: str,
        max_count: int = _DEFAULT_MAX_PER_AUTHOR,
        skip_existing: bool = False,
    ) -> DownloadSummary:
        """Download up to *max_count* free articles of one publication.

        With *skip_existing*, articles whose identifier is already stored
        are not fetched at all.
        """
        urls = await self._discovery.articles_for_author(subdomain, max_count)
        stored: list[str] = []
        skipped: list[str] = []
        failed: list[ArticleFailure] = []

        self._logger.info("author_download_start", subdomain=subdomain, articles=len(urls))
        for url in urls:
            try:
                identifier = article_identifier(subdomain, url)
            except KstackError as exc:
                self._record_failure(failed, subdomain, url, exc)
                continue

            if skip_existing and self._store.exists(identifier):
                skipped.append(identifier)
                continue

            try:
                document = await self._scraper.scrape(url)
                self._store.write(identifier, document.to_markdown())
                stored.append(identifier)
                self._logger.info("article_stored", subdomain=subdomain, identifier=identifier)
            except Exception as exc:
                self._record_failure(failed, subdomain, url, exc)
            await self._sleep(self._courtesy_delay)

        summary = DownloadSummary(discovered=len(urls), stored=stored, skipped=skipped, failed=failed)
        self._logger.info(
            "author_download_complete",
            subdomain=subdomain,
            stored=len(stored),
            skipped=len(skipped),
            failed=len(failed),
        )
        return summary

    # ------------------------------------------------------------------
    # Category
    # ------------------------------------------------------------------

    async def download_category(
        self,
        category_id: int,
        max_per_author: int = _DEFAULT_MAX_PER_AUTHOR,
    ) -> DownloadSummary:
        """Download every trending publication of a category, skipping stored articles."""
        subdomains = await self._discovery.subdomains_for_category(category_id)
        self._logger.info("category_download_start", category_id=category_id, authors=len(subdomains))

        summary = DownloadSummary()
        for subdomain in subdomains:
            summary = summary.merge(
                await self.download_author(subdomain, max_per_author, skip_existing=True)
            )
        return summary

    async def download_all_configured(
        self,
        category_ids: Iterable[int],
        max_per_author: int = _DEFAULT_MAX_PER_AUTHOR,
    ) -> DownloadSummary:
        """Run :meth:`download_category` for every configured category in order."""
        summary = DownloadSummary()
        for category_id in category_ids:
            summary = summary.merge(await self.download_category(category_id, max_per_author))
        self._logger.info(
            "archive_run_complete",
            stored=len(summary.stored),
            skipped=len(summary.skipped),
            failed=len(summary.failed),
        )
        return summary

    def _record_failure(
        self,
        failed: list[ArticleFailure],
        subdomain: str,
        url: str,
        exc: Exception,
    ) -> None:
        self._logger.warning(
            "article_failed",
            subdomain=subdomain,
            url=url,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        failed.append(ArticleFailure(url=url, error=str(exc)))
