"""kstack API layer — routes, schemas, and middleware."""

from kstack.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from kstack.api.routes import router
from kstack.api.schemas import (
    CategoriesResponse,
    ErrorResponse,
    HealthResponse,
    ScrapeStartResponse,
    ScrapeStatusResponse,
    SearchResponseBody,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "CategoriesResponse",
    "ErrorResponse",
    "HealthResponse",
    "ScrapeStartResponse",
    "ScrapeStatusResponse",
    "SearchResponseBody",
]
