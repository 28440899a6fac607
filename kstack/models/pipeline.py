"""Run summaries produced by the archive pipeline.

Per-article failures are recorded here instead of being raised, so one
broken article never aborts an author or category run; the summary tells
the operator how many articles were stored, skipped and failed.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ArticleFailure(BaseModel):
    """One article that could not be fetched, converted or stored."""

    model_config = ConfigDict(frozen=True)

    url: str
    error: str


class DownloadSummary(BaseModel):
    """Outcome of downloading one author, one category or a full run."""

    model_config = ConfigDict(frozen=True)

    discovered: int = 0
    stored: list[str] = Field(default_factory=list, description="Identifiers written.")
    skipped: list[str] = Field(default_factory=list, description="Identifiers already stored.")
    failed: list[ArticleFailure] = Field(default_factory=list)

    def merge(self, other: DownloadSummary) -> DownloadSummary:
        return DownloadSummary(
            discovered=self.discovered + other.discovered,
            stored=[*self.stored, *other.stored],
            skipped=[*self.skipped, *other.skipped],
            failed=[*self.failed, *other.failed],
        )
