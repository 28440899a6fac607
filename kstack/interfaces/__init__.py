"""Public interface definitions for external collaborators.

Network access goes through :class:`IHttpFetcher`, so discovery, scraping
and the pipeline can be unit-tested with a mock fetcher instead of a live
connection to the publishing platform.
"""

from kstack.interfaces.http_fetcher import FetchResponse, IHttpFetcher

__all__ = ["FetchResponse", "IHttpFetcher"]
