"""kstack domain models — re-exports all public model classes.

    - article.py   — stored article document, identifiers, search results
    - pipeline.py  — download run summaries
"""

from __future__ import annotations

from kstack.models.article import (
    ArticleDocument,
    SearchResponse,
    SearchResult,
    article_identifier,
    article_slug,
)
from kstack.models.pipeline import ArticleFailure, DownloadSummary

__all__ = [
    "ArticleDocument",
    "ArticleFailure",
    "DownloadSummary",
    "SearchResponse",
    "SearchResult",
    "article_identifier",
    "article_slug",
]
