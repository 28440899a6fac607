"""Background archive runs triggered from the API.

Only one run may be active at a time.  :meth:`ScrapeJobRunner.start` is a
no-op while a run is in flight and otherwise hands the run to the
:class:`TaskExecutor`, returning immediately.  The category list is re-read
at the start of every run so edits made through the API take effect on the
next trigger.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import structlog

from kstack.config.loader import read_category_ids
from kstack.models.pipeline import DownloadSummary
from kstack.pipeline.orchestrator import ArchivePipeline
from kstack.utils.concurrency import TaskExecutor
from kstack.utils.logging import get_logger


class ScrapeJobRunner:
    """Starts at most one :meth:`ArchivePipeline.download_all_configured` at a time."""

    def __init__(
        self,
        pipeline: ArchivePipeline,
        executor: TaskExecutor,
        categories_path: str | Path,
        max_per_author: int,
        category_reader: Callable[[str | Path], list[int]] = read_category_ids,
    ) -> None:
        self._pipeline = pipeline
        self._executor = executor
        self._categories_path = categories_path
        self._max_per_author = max_per_author
        self._read_categories = category_reader
        self._running = False
        self._task: asyncio.Task[DownloadSummary | None] | None = None
        self._last_summary: DownloadSummary | None = None
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def last_summary(self) -> DownloadSummary | None:
        return self._last_summary

    @property
    def task(self) -> asyncio.Task[DownloadSummary | None] | None:
        return self._task

    def start(self) -> bool:
        """Start a run unless one is active; returns whether a run was started."""
        if self._running:
            self._logger.info("scrape_already_running")
            return False
        self._running = True
        try:
            self._task = self._executor.submit(self._run)
        except Exception:
            self._running = False
            raise
        return True

    async def _run(self) -> DownloadSummary | None:
        try:
            category_ids = self._read_categories(self._categories_path)
            self._logger.info("scrape_started", categories=category_ids)
            summary = await self._pipeline.download_all_configured(category_ids, self._max_per_author)
            self._last_summary = summary
            return summary
        except asyncio.CancelledError:
            self._logger.warning("scrape_cancelled")
            raise
        except Exception as exc:
            self._logger.error("scrape_failed", error=str(exc), error_type=type(exc).__name__)
            return None
        finally:
            self._running = False
            self._logger.info("scrape_finished")
