"""Article and publication discovery through the platform's JSON APIs.

Two enumerations feed the pipeline:

- **articles_for_author** pages through a publication's archive API
  (20 posts per page, newest first) and keeps free, non-podcast posts.
- **subdomains_for_category** pages through a category's trending
  leaderboard and keeps English-language publications.

A failed page ends the enumeration early; whatever was collected before it
is returned so one bad page never discards a whole author or category.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from kstack.interfaces.http_fetcher import IHttpFetcher
from kstack.utils.errors import KstackError
from kstack.utils.logging import get_logger

ARCHIVE_URL = "https://{subdomain}.substack.com/api/v1/archive?sort=new&search=&offset={offset}&limit={limit}"
LEADERBOARD_URL = "https://substack.com/api/v1/category/leaderboard/{category_id}/trending?page={page}"

ARCHIVE_PAGE_SIZE = 20
# The archive API stops serving pages past this offset.
ARCHIVE_MAX_OFFSET = 300

_DEFAULT_COURTESY_DELAY = 0.75


class DiscoveryService:
    """Enumerates article URLs and publication subdomains."""

    def __init__(
        self,
        http_fetcher: IHttpFetcher,
        courtesy_delay: float = _DEFAULT_COURTESY_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self._fetcher = http_fetcher
        self._courtesy_delay = courtesy_delay
        self._sleep = sleep
        self._logger = logger or get_logger(__name__)

    async def articles_for_author(self, subdomain: str, max_count: int) -> list[str]:
        """Return up to *max_count* canonical article URLs, newest first."""
        urls: list[str] = []
        seen: set[str] = set()
        offset = 0

        while len(urls) < max_count and offset < ARCHIVE_MAX_OFFSET:
            page_url = ARCHIVE_URL.format(subdomain=subdomain, offset=offset, limit=ARCHIVE_PAGE_SIZE)
            try:
                items = await self._fetch_json(page_url)
            except (KstackError, ValueError) as exc:
                self._logger.warning(
                    "archive_page_failed",
                    subdomain=subdomain,
                    offset=offset,
                    error=str(exc),
                    collected=len(urls),
                )
                break
            await self._sleep(self._courtesy_delay)

            if not isinstance(items, list) or not items:
                break
            for item in items:
                url = _free_article_url(item)
                if url is None or url in seen:
                    continue
                seen.add(url)
                urls.append(url)
                if len(urls) >= max_count:
                    break
            offset += ARCHIVE_PAGE_SIZE

        self._logger.info("author_articles_discovered", subdomain=subdomain, count=len(urls))
        return urls

    async def subdomains_for_category(self, category_id: int) -> list[str]:
        """Return the English publications trending in *category_id*."""
        subdomains: list[str] = []
        seen: set[str] = set()
        page = 0

        while True:
            page_url = LEADERBOARD_URL.format(category_id=category_id, page=page)
            try:
                payload = await self._fetch_json(page_url)
            except (KstackError, ValueError) as exc:
                self._logger.warning(
                    "leaderboard_page_failed",
                    category_id=category_id,
                    page=page,
                    error=str(exc),
                    collected=len(subdomains),
                )
                break
            if not isinstance(payload, dict):
                break

            for item in payload.get("items") or []:
                publication = item.get("publication") if isinstance(item, dict) else None
                if not isinstance(publication, dict) or publication.get("language") != "en":
                    continue
                subdomain = publication.get("subdomain")
                if subdomain and subdomain not in seen:
                    seen.add(subdomain)
                    subdomains.append(subdomain)

            if not payload.get("more"):
                break
            page += 1

        self._logger.info("category_subdomains_discovered", category_id=category_id, count=len(subdomains))
        return subdomains

    async def _fetch_json(self, url: str) -> Any:
        response = await self._fetcher.fetch(url)
        return json.loads(response.text)


def _free_article_url(item: Any) -> str | None:
    if not isinstance(item, dict):
        return None
    if item.get("audience") != "everyone" or item.get("type") == "podcast":
        return None
    return item.get("canonical_url") or None
