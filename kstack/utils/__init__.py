"""Utility modules for kstack.

Available utility modules (re-exported here for convenience):

- **errors** -- Domain-specific exception hierarchy rooted at KstackError;
  fetch, conversion and executor failures each raise their own subclass so
  callers can decide per article whether to skip or abort.
- **concurrency** -- unbounded asyncio task executor with wait-all,
  wait-any and deadline semantics.
- **logging** -- structlog setup with a dual-renderer pattern plus an
  in-memory log buffer for the status endpoint.
"""

# -- Domain exception hierarchy --------------------------------------------
from kstack.utils.errors import (
    ArticleError,
    ConfigurationError,
    FetchError,
    KstackError,
    MaxRetriesExceededError,
    RejectedSubmissionError,
    TaskTimeoutError,
    UnsupportedElementError,
    UnsupportedEmbedVariantError,
)

# -- Async bulk execution --------------------------------------------------
from kstack.utils.concurrency import TaskExecutor

# -- Structured logging setup ----------------------------------------------
from kstack.utils.logging import LogBuffer, configure_logging, get_logger, log_buffer

__all__ = [
    "ArticleError",
    "ConfigurationError",
    "FetchError",
    "KstackError",
    "LogBuffer",
    "MaxRetriesExceededError",
    "RejectedSubmissionError",
    "TaskExecutor",
    "TaskTimeoutError",
    "UnsupportedElementError",
    "UnsupportedEmbedVariantError",
    "configure_logging",
    "get_logger",
    "log_buffer",
]
