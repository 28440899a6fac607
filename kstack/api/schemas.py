"""Pydantic request/response schemas for the kstack API.

Defines the public contract of the archive endpoints: health, scrape status
and trigger, keyword search, article retrieval and the category list.

Convention: response schemas end with "Response".  Search hits reuse the
domain :class:`~kstack.models.article.SearchResult` model directly.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from kstack.models.article import SearchResult
from kstack.models.pipeline import DownloadSummary


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    articles_stored: int = Field(description="Documents currently in the content store.")


class ScrapeStatusResponse(BaseModel):
    """Whether an archive run is active, plus the most recent log lines."""

    scraping: bool
    last_summary: DownloadSummary | None = None
    logs: list[str] = Field(default_factory=list)


class ScrapeStartResponse(BaseModel):
    """Result of a scrape trigger; ``started`` is false when a run was already active."""

    started: bool
    message: str


class SearchResponseBody(BaseModel):
    """Ranked keyword search hits."""

    keywords: list[str]
    results: list[SearchResult] = Field(default_factory=list)
    total_scanned: int = 0
    elapsed_ms: float = 0.0


class CategoriesResponse(BaseModel):
    """The raw category file plus the IDs parsed from it."""

    text: str
    category_ids: list[int] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
