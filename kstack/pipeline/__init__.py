"""Pipeline orchestration components for the article archive."""

from kstack.pipeline.orchestrator import ArchivePipeline
from kstack.pipeline.scrape_job import ScrapeJobRunner

__all__ = [
    "ArchivePipeline",
    "ScrapeJobRunner",
]
