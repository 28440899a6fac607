"""Resilient HTTP fetch client built on httpx.

Every request carries the same browser-like header profile, the cookies
from the injected :class:`CookieJar`, and is retried according to a fixed
policy:

    connection failure  -> wait ``connect_retry_delay`` (7 s), retry, keep cookies
    HTTP 429            -> clear the cookie jar, wait ``rate_limit_retry_delay``
                           (14 s), retry with a fresh session
    HTTP 200 / 403      -> success; some private publications answer 403 and
                           the caller inspects the body
    anything else       -> UnexpectedStatusError, not retried

gzip bodies are decoded by httpx; any other declared Content-Encoding is
rejected with UnsupportedEncodingError.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import httpx
import structlog

from kstack.interfaces.http_fetcher import FetchResponse, IHttpFetcher
from kstack.providers.http.cookie_jar import CookieJar
from kstack.utils.errors import (
    FetchError,
    MaxRetriesExceededError,
    RateLimitedError,
    TransientNetworkError,
    UnexpectedStatusError,
    UnsupportedEncodingError,
)
from kstack.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

HTTP_HEADERS: dict[str, str] = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64; rv:140.0) Gecko/20100101 Firefox/140.0",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip",
    "Sec-GPC": "1",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Priority": "u=0, i",
}

_SUCCESS_STATUSES = frozenset({200, 403})
_ACCEPTED_ENCODINGS = frozenset({"gzip", "identity"})
_MAX_REDIRECTS = 5
# Upper bound on how much of a failing body goes into the log.
_LOGGED_BODY_CHARS = 4000

_DEFAULT_TIMEOUT = 60.0
_DEFAULT_MAX_RETRIES = 2
_DEFAULT_CONNECT_RETRY_DELAY = 7.0
_DEFAULT_RATE_LIMIT_RETRY_DELAY = 14.0


def make_http_client(timeout: float = _DEFAULT_TIMEOUT) -> httpx.AsyncClient:
    """Create the httpx.AsyncClient used by :class:`FetchClient`."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        headers=HTTP_HEADERS,
        follow_redirects=True,
        max_redirects=_MAX_REDIRECTS,
    )


class FetchClient(IHttpFetcher):
    """Fetches URLs with retries and an explicit cookie jar.

    Parameters
    ----------
    http_client:
        Shared httpx.AsyncClient; one is created when omitted and closed by
        :meth:`aclose`.
    cookie_jar:
        Jar owned by this client.  It is the only writer of the jar.
    max_retries:
        Default number of additional attempts after the first.
    connect_retry_delay / rate_limit_retry_delay:
        Backoff in seconds for connection failures and HTTP 429.
    sleep:
        Awaitable sleep function; tests replace it to skip real waits.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        cookie_jar: CookieJar | None = None,
        *,
        max_retries: int = _DEFAULT_MAX_RETRIES,
        connect_retry_delay: float = _DEFAULT_CONNECT_RETRY_DELAY,
        rate_limit_retry_delay: float = _DEFAULT_RATE_LIMIT_RETRY_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or make_http_client()
        self._jar = cookie_jar if cookie_jar is not None else CookieJar()
        self._max_retries = max_retries
        self._connect_retry_delay = connect_retry_delay
        self._rate_limit_retry_delay = rate_limit_retry_delay
        self._sleep = sleep
        self._logger = logger or _logger

    @property
    def cookie_jar(self) -> CookieJar:
        return self._jar

    # ------------------------------------------------------------------
    # IHttpFetcher implementation
    # ------------------------------------------------------------------

    async def fetch(self, url: str, max_retries: int | None = None) -> FetchResponse:
        """Fetch *url*, retrying connection failures and rate limiting."""
        retries = self._max_retries if max_retries is None else max_retries
        attempts = retries + 1

        for attempt in range(1, attempts + 1):
            last_attempt = attempt == attempts
            try:
                return await self._attempt(url)
            except TransientNetworkError as exc:
                self._logger.warning(
                    "fetch_connection_failed",
                    url=url,
                    attempt=attempt,
                    error=exc.message,
                )
                if not last_attempt:
                    await self._sleep(self._connect_retry_delay)
            except RateLimitedError:
                self._logger.warning(
                    "fetch_rate_limited",
                    url=url,
                    attempt=attempt,
                    retry_in=self._rate_limit_retry_delay,
                )
                self._jar.clear()
                if not last_attempt:
                    await self._sleep(self._rate_limit_retry_delay)

        self._logger.error("fetch_retries_exhausted", url=url, attempts=attempts)
        raise MaxRetriesExceededError(url, attempts)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _attempt(self, url: str) -> FetchResponse:
        host = httpx.URL(url).host
        headers: dict[str, str] = {}
        cookie_header = self._jar.header_for(host)
        if cookie_header:
            headers["Cookie"] = cookie_header

        try:
            response = await self._client.get(url, headers=headers)
        except httpx.TransportError as exc:
            raise TransientNetworkError(url, message=str(exc) or type(exc).__name__) from exc
        except httpx.HTTPError as exc:
            raise FetchError(message=f"HTTP error: {exc}", source=url) from exc
        finally:
            # The jar is the only cookie store; drop anything httpx kept.
            self._client.cookies.clear()

        for hop in (*response.history, response):
            self._jar.update_from_headers(hop.headers.get_list("set-cookie"), hop.url.host)

        encoding = response.headers.get("content-encoding")
        if encoding and encoding.strip().lower() not in _ACCEPTED_ENCODINGS:
            raise UnsupportedEncodingError(url, encoding)

        status = response.status_code
        if status == 429:
            raise RateLimitedError(url)
        if status not in _SUCCESS_STATUSES:
            self._logger.error(
                "fetch_unexpected_status",
                url=url,
                status=status,
                body=response.text[:_LOGGED_BODY_CHARS],
            )
            raise UnexpectedStatusError(url, status)

        return FetchResponse(
            status_code=status,
            text=response.text,
            headers={k.lower(): v for k, v in response.headers.items()},
            url=url,
        )
