"""Abstract base class for HTTP fetchers.

Defines the contract the discovery service, article scraper and pipeline
use to talk to the publishing platform.  The concrete
:class:`~kstack.providers.http.fetch_client.FetchClient` wraps httpx and adds
retries, cookie management and gzip handling; tests inject a mock built
from this interface instead.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class FetchResponse:
    """Summary of a successful HTTP exchange.

    Attributes
    ----------
    status_code:
        Final status code (200 or 403; other codes never reach callers).
    headers:
        Response headers of the final hop, lower-cased names.
    text:
        Decoded response body.
    url:
        The URL that was requested.
    """

    status_code: int
    text: str
    headers: dict[str, str] = field(default_factory=dict)
    url: str = ""


class IHttpFetcher(ABC):
    """Contract for clients that fetch a URL with retry semantics."""

    @abstractmethod
    async def fetch(self, url: str, max_retries: int | None = None) -> FetchResponse:
        """Fetch *url* and return its response summary.

        Parameters
        ----------
        url:
            Absolute https URL.
        max_retries:
            Additional attempts after the first; ``None`` uses the
            fetcher's configured default.

        Raises
        ------
        kstack.utils.errors.FetchError
            If the request cannot be completed.
        """

    @abstractmethod
    async def aclose(self) -> None:
        """Release network resources held by the fetcher."""
