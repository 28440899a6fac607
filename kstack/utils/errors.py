"""Custom exception hierarchy for kstack.

All application exceptions inherit from :class:`KstackError`, which
carries an optional ``source`` so error handlers can identify which
component or remote resource (e.g. a URL, "converter", "executor") caused
the failure.

The hierarchy is organized by subsystem:

    KstackError  (base -- catch-all for any kstack error)
    +-- FetchError                   (fetch client)
    |   +-- TransientNetworkError    (connection failure, retried)
    |   +-- RateLimitedError         (HTTP 429, retried with a fresh session)
    |   +-- MaxRetriesExceededError  (all attempts used up)
    |   +-- UnexpectedStatusError    (non-retried status code)
    |   +-- UnsupportedEncodingError (Content-Encoding other than gzip)
    +-- ArticleError                 (fatal for one article only)
    |   +-- InvalidArticleUrlError
    |   +-- MissingRequiredFieldError
    |   +-- UnsupportedElementError
    |   +-- UnsupportedEmbedVariantError
    +-- ArticleNotFoundError         (content store lookup by hash)
    +-- RejectedSubmissionError      (executor shutting down)
    +-- TaskTimeoutError             (bulk "any" deadline without a winner)
    +-- ConfigurationError

The pipeline catches :class:`KstackError` at its per-article boundary, so a
single broken article never aborts an author or category run.
"""

from __future__ import annotations


class KstackError(Exception):
    """Base exception for all kstack errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``source``.  ``__str__`` prefixes the source in brackets for log
    scanning, e.g. ``[https://x.substack.com/p/y] Unexpected status 500``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        source: str | None = None,
    ) -> None:
        self._message = message
        self._source = source
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def source(self) -> str | None:
        return self._source

    def __str__(self) -> str:
        if self._source:
            return f"[{self._source}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Fetch client errors
# ---------------------------------------------------------------------------

class FetchError(KstackError):
    """Base class for failures raised by the fetch client."""


class TransientNetworkError(FetchError):
    """A connection-level failure; the fetch client waits and retries."""

    def __init__(self, url: str, message: str = "Connection failed") -> None:
        super().__init__(message=message, source=url)


class RateLimitedError(FetchError):
    """HTTP 429 from the remote; the fetch client resets cookies and retries."""

    def __init__(self, url: str) -> None:
        super().__init__(message="Rate limited (HTTP 429)", source=url)


class MaxRetriesExceededError(FetchError):
    """Raised when every attempt for a URL failed."""

    def __init__(self, url: str, attempts: int = 0) -> None:
        self.url = url
        self.attempts = attempts
        super().__init__(
            message=f"Gave up after {attempts} attempt(s)",
            source=url,
        )


class UnexpectedStatusError(FetchError):
    """A status code outside 200/403/429.  Never retried."""

    def __init__(self, url: str, status_code: int) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(
            message=f"Unexpected status code {status_code}",
            source=url,
        )


class UnsupportedEncodingError(FetchError):
    """The response declared a Content-Encoding the client cannot decode."""

    def __init__(self, url: str, encoding: str) -> None:
        self.encoding = encoding
        super().__init__(
            message=f"Unsupported content encoding: {encoding}",
            source=url,
        )


# ---------------------------------------------------------------------------
# Per-article errors
# ---------------------------------------------------------------------------

class ArticleError(KstackError):
    """Base class for errors that are fatal for one article only."""


class InvalidArticleUrlError(ArticleError):
    """The URL carries none of the ``/p/``, ``/p-``, ``/cp/``, ``/cp-`` markers."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(message="URL has no article slug marker", source=url)


class MissingRequiredFieldError(ArticleError):
    """A required article field (title, date, body, data-attrs) was not found."""

    def __init__(self, field: str, source: str | None = None) -> None:
        self.field = field
        super().__init__(message=f"Missing required field: {field}", source=source)


class UnsupportedElementError(ArticleError):
    """The converter met a tag outside the supported vocabulary.

    ``inner`` tells whether the tag was met while rendering inline content
    (True) or as a direct child of the article body (False); ``depth`` is
    the nesting depth below the body root.
    """

    def __init__(self, tag: str, *, depth: int = 0, inner: bool = False) -> None:
        self.tag = tag
        self.depth = depth
        self.inner = inner
        level = "inner" if inner else "top-level"
        super().__init__(
            message=f"Unsupported {level} element <{tag}> at depth {depth}",
            source="converter",
        )


class UnsupportedEmbedVariantError(ArticleError):
    """The converter met a classed container that is not a known embed."""

    def __init__(self, class_name: str, *, depth: int = 0) -> None:
        self.class_name = class_name
        self.depth = depth
        super().__init__(
            message=f"Unsupported embed variant '{class_name}' at depth {depth}",
            source="converter",
        )


# ---------------------------------------------------------------------------
# Storage / executor / configuration errors
# ---------------------------------------------------------------------------

class ArticleNotFoundError(KstackError):
    """No stored article exists for the requested hash."""

    def __init__(self, content_hash: str) -> None:
        self.content_hash = content_hash
        super().__init__(message="Article not found", source=content_hash)


class RejectedSubmissionError(KstackError):
    """Work was submitted to an executor that is shutting down."""

    def __init__(self, message: str = "Executor is shutting down") -> None:
        super().__init__(message=message, source="executor")


class TaskTimeoutError(KstackError):
    """No task finished successfully before the deadline."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(
            message=f"No task completed within {timeout:g}s",
            source="executor",
        )


class ConfigurationError(KstackError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        source: str | None = None,
    ) -> None:
        super().__init__(message=message, source=source)
