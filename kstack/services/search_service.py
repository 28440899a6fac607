"""Brute-force keyword ranking over the content store.

Every query scans all 256 shards; there is no index.  A document's score is

    (Σ count(k) × 2^len(k)) × (matched / total)² / sqrt(len(document))

summed over the keywords that occur at least once, where ``count`` counts
overlapping case-insensitive occurrences.  Long keywords dominate, documents
matching every keyword beat partial matches, and long documents are damped.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

import structlog

from kstack.models.article import AUTHOR_PREFIX, SearchResponse, SearchResult
from kstack.providers.storage.content_store import ContentStore
from kstack.utils.logging import get_logger

_DEFAULT_TOP_K = 10


def count_occurrences(text: str, keyword: str) -> int:
    """Count occurrences of *keyword* in *text*, overlapping ones included.

    >>> count_occurrences("aaaa", "aa")
    3
    """
    if not keyword:
        return 0
    count = 0
    position = text.find(keyword)
    while position != -1:
        count += 1
        position = text.find(keyword, position + 1)
    return count


def score_document(text: str, keywords: list[str]) -> float:
    """Score *text* against already lower-cased *keywords*."""
    if not text or not keywords:
        return 0.0
    lowered = text.lower()
    weighted = 0
    matched = 0
    for keyword in keywords:
        occurrences = count_occurrences(lowered, keyword)
        if occurrences:
            matched += 1
            weighted += occurrences * 2 ** len(keyword)
    if not matched:
        return 0.0
    return weighted * (matched / len(keywords)) ** 2 / math.sqrt(len(text))


def extract_title(text: str) -> str:
    for line in text.splitlines():
        if line.startswith("# "):
            return line[2:].strip()
    return ""


def extract_author(text: str) -> str:
    for line in text.splitlines():
        if line.startswith(AUTHOR_PREFIX):
            return line[len(AUTHOR_PREFIX):].strip()
        if line.startswith("# "):
            break
    return ""


class SearchService:
    """Ranks stored articles against a keyword query."""

    def __init__(self, store: ContentStore, logger: structlog.BoundLogger | None = None) -> None:
        self._store = store
        self._logger = logger or get_logger(__name__)

    def search(self, keywords: Iterable[str], top_k: int = _DEFAULT_TOP_K) -> SearchResponse:
        terms = [k.strip().lower() for k in keywords if k and k.strip()]
        if not terms or top_k <= 0:
            return SearchResponse()

        # (score, path, text) kept sorted by score, best first.
        top: list[tuple[float, str, str]] = []
        scanned = 0
        for path, text in self._store.iter_documents():
            scanned += 1
            score = score_document(text, terms)
            worst = top[-1][0] if len(top) == top_k else 0.0
            if score > worst:
                top.append((score, path.name, text))
                top.sort(key=lambda entry: entry[0], reverse=True)
                del top[top_k:]

        results = [
            SearchResult(score=score, title=extract_title(text), author=extract_author(text), file=name)
            for score, name, text in top
        ]
        self._logger.info("search_completed", keywords=terms, scanned=scanned, hits=len(results))
        return SearchResponse(results=results, total_scanned=scanned)
