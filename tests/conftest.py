"""Shared pytest fixtures for the kstack test suite."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from kstack.interfaces.http_fetcher import FetchResponse, IHttpFetcher
from kstack.providers.storage.content_store import ContentStore
from kstack.utils.errors import UnexpectedStatusError

# ---------------------------------------------------------------------------
# Page builders
# ---------------------------------------------------------------------------


def preloads_script(payload: dict[str, Any]) -> str:
    """Render a ``window._preloads`` script the way article pages embed it."""
    literal = json.dumps(json.dumps(payload))
    return f"<script>window._preloads        = JSON.parse({literal})</script>"


def article_page(
    body_html: str | None = "<p>Hello <b>world </b>again</p>",
    *,
    title: str | None = "Rust at Scale",
    subtitle: str | None = "Lessons from a year of async",
    date_text: str | None = "Mar 3, 2024",
    author: str | None = "Jane Writer",
    post_extra: dict[str, Any] | None = None,
) -> str:
    """Build a minimal article page with the markup the scraper reads."""
    head = ['<meta property="og:title" content="OG Title">']
    if author:
        head.append(f'<meta name="author" content="{author}">')
    body = []
    if title:
        body.append(f'<h1 class="post-title">{title}</h1>')
    if subtitle:
        body.append(f'<h3 class="subtitle">{subtitle}</h3>')
    if date_text:
        body.append(f'<div class="pencraft">{date_text}</div>')
    if body_html is not None:
        post = {"body_html": body_html, **(post_extra or {})}
        body.append(preloads_script({"post": post}))
    return f"<html><head>{''.join(head)}</head><body>{''.join(body)}</body></html>"


def ok(text: str, status_code: int = 200) -> FetchResponse:
    return FetchResponse(status_code=status_code, text=text)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(tmp_path: Path) -> ContentStore:
    """Empty content store rooted in a temporary directory."""
    return ContentStore(tmp_path / "data")


@pytest.fixture
def mock_fetcher() -> IHttpFetcher:
    """Mock IHttpFetcher; set ``fetch.return_value`` or ``side_effect`` per test."""
    mock = MagicMock(spec=IHttpFetcher)
    mock.fetch = AsyncMock(return_value=ok(""))
    mock.aclose = AsyncMock()
    return mock


@pytest.fixture
def routed_fetcher() -> Callable[[dict[str, str]], IHttpFetcher]:
    """Factory for a mock fetcher that answers by exact URL.

    Unknown URLs fail with a 404 UnexpectedStatusError, like the real client.
    """

    def _build(routes: dict[str, str]) -> IHttpFetcher:
        async def _fetch(url: str, max_retries: int | None = None) -> FetchResponse:
            if url not in routes:
                raise UnexpectedStatusError(url, 404)
            return ok(routes[url])

        mock = MagicMock(spec=IHttpFetcher)
        mock.fetch = AsyncMock(side_effect=_fetch)
        mock.aclose = AsyncMock()
        return mock

    return _build


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Stand-in for asyncio.sleep that returns immediately."""
    return AsyncMock(return_value=None)
