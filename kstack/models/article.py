"""Article models and identifier helpers.

An article is identified inside the archive by ``{subdomain}/{slug}``, where
the slug is whatever follows the first ``/p/``, ``/p-``, ``/cp/`` or ``/cp-``
marker of its canonical URL.  The identifier never depends on scrape time,
so re-scraping the same article always lands on the same stored file.

:class:`ArticleDocument` renders the stored markdown.  Its header lines come
in a fixed order because the search service finds the author and title by
their line prefixes (``Author: `` and ``# ``).
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from kstack.utils.errors import InvalidArticleUrlError

ARTICLE_SLUG_MARKER = re.compile(r"/c?p[/-]")

AUTHOR_PREFIX = "Author: "
URL_PREFIX = "Original URL: "
SCRAPE_TIME_PREFIX = "Scrape time: "


def article_slug(url: str) -> str:
    """Return the slug after the first article path marker of *url*."""
    parts = ARTICLE_SLUG_MARKER.split(url, maxsplit=1)
    if len(parts) < 2 or not parts[1]:
        raise InvalidArticleUrlError(url)
    return parts[1]


def article_identifier(subdomain: str, url: str) -> str:
    """Build the archive identifier ``{subdomain}/{slug}`` for *url*."""
    return f"{subdomain}/{article_slug(url)}"


class ArticleDocument(BaseModel):
    """A scraped article ready to be stored.

    Frozen (immutable) — use ``model_copy(update={...})`` to derive variants.
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(description="Original article URL.")
    title: str
    subtitle: str | None = None
    date: str = Field(description="Publication date as shown on the page, e.g. 'Mar 3, 2024'.")
    author: str
    body: str = Field(description="Converted markdown body.")
    scraped_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def to_markdown(self) -> str:
        """Render the stored document: metadata header, headings, body."""
        lines = [
            f"{URL_PREFIX}{self.url}",
            f"{SCRAPE_TIME_PREFIX}{self.scraped_at.isoformat(timespec='seconds')}",
            f"{AUTHOR_PREFIX}{self.author}",
            "",
            f"# {self.title}",
        ]
        if self.subtitle:
            lines.append(f"## {self.subtitle}")
        lines.append(f"### {self.date}")
        return "\n".join(lines) + self.body + "\n"


class SearchResult(BaseModel):
    """One ranked hit of a keyword search."""

    model_config = ConfigDict(frozen=True)

    score: float
    title: str
    author: str
    file: str


class SearchResponse(BaseModel):
    """Ranked results plus how many stored documents were scanned."""

    model_config = ConfigDict(frozen=True)

    results: list[SearchResult] = Field(default_factory=list)
    total_scanned: int = 0
