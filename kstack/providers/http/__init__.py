"""HTTP providers.

    1. FetchClient — httpx-backed IHttpFetcher with the retry policy,
       fixed header profile and gzip-only content encoding.
    2. CookieJar — the explicit cookie store the fetch client owns.
"""

from kstack.providers.http.cookie_jar import CookieEntry, CookieJar
from kstack.providers.http.fetch_client import HTTP_HEADERS, FetchClient, make_http_client

__all__ = ["CookieEntry", "CookieJar", "FetchClient", "HTTP_HEADERS", "make_http_client"]
