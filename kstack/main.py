"""kstack FastAPI application entry point.

Wires together the fetch client, content store, services and routes via
dependency injection.  Loads configuration from ``.env`` and
``config/config.yaml``, configures structured logging, and exposes the
archive API under ``/api/v1``.

Also provides :func:`build_components` for CLI usage outside the web
server, so both entry points share one wiring.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from kstack import __version__
from kstack.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from kstack.api.routes import router as api_router
from kstack.config.loader import load_config
from kstack.config.settings import Settings
from kstack.pipeline.orchestrator import ArchivePipeline
from kstack.pipeline.scrape_job import ScrapeJobRunner
from kstack.providers.http.cookie_jar import CookieJar
from kstack.providers.http.fetch_client import FetchClient, make_http_client
from kstack.providers.storage.content_store import ContentStore
from kstack.services.article_scraper import ArticleScraper
from kstack.services.discovery_service import DiscoveryService
from kstack.services.search_service import SearchService
from kstack.utils.concurrency import TaskExecutor
from kstack.utils.logging import configure_logging, get_logger, log_buffer

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)

# Seconds a cancelled background scrape gets to unwind at shutdown.
_SHUTDOWN_GRACE_SECONDS = 5.0


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def build_components(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance.

    Returns a flat dict of named components; the web app stores them on
    ``app.state`` and the CLI uses them directly.  The caller owns
    ``http_client`` and ``executor`` and must close them.
    """
    config = load_config(settings=app_settings)

    # -- Shared resources --
    http_client = make_http_client(timeout=app_settings.fetch_timeout)
    fetcher = FetchClient(
        http_client=http_client,
        cookie_jar=CookieJar(),
        max_retries=app_settings.fetch_max_retries,
        connect_retry_delay=app_settings.connect_retry_delay,
        rate_limit_retry_delay=app_settings.rate_limit_retry_delay,
    )
    store = ContentStore(app_settings.data_dir)
    executor = TaskExecutor()

    # -- Services --
    discovery = DiscoveryService(fetcher, courtesy_delay=app_settings.courtesy_delay)
    scraper = ArticleScraper(fetcher)
    search_service = SearchService(store)

    # -- Pipeline --
    pipeline = ArchivePipeline(
        discovery=discovery,
        scraper=scraper,
        store=store,
        courtesy_delay=app_settings.courtesy_delay,
    )
    scrape_runner = ScrapeJobRunner(
        pipeline=pipeline,
        executor=executor,
        categories_path=app_settings.categories_path,
        max_per_author=app_settings.max_articles_per_author,
    )

    api_config = config.get("api", {})
    return {
        "config": config,
        "http_client": http_client,
        "fetcher": fetcher,
        "store": store,
        "executor": executor,
        "discovery": discovery,
        "scraper": scraper,
        "search_service": search_service,
        "pipeline": pipeline,
        "scrape_runner": scrape_runner,
        "log_buffer": log_buffer,
        "categories_path": app_settings.categories_path,
        "search_top_k": app_settings.search_top_k,
        "max_categories_bytes": api_config.get("max_categories_bytes", 10 * 1024),
        "version": config.get("app", {}).get("version", __version__),
    }


async def close_components(components: dict[str, Any]) -> None:
    """Cancel background work and close the shared HTTP client."""
    executor: TaskExecutor = components["executor"]
    executor.shutdown_now()
    if not await executor.await_termination(_SHUTDOWN_GRACE_SECONDS):
        _logger.warning("executor_tasks_still_running", pending=executor.pending_count)
    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


def _make_lifespan(app_settings: Settings):  # noqa: ANN202
    @asynccontextmanager
    async def _lifespan(application: FastAPI):  # noqa: ANN202
        """Initialise all providers and services on startup, clean up on shutdown."""
        components = build_components(app_settings)
        for key, value in components.items():
            setattr(application.state, key, value)

        _logger.info(
            "app_startup",
            version=components["version"],
            environment=app_settings.app_env,
            data_dir=app_settings.data_dir,
        )

        yield

        await close_components(components)
        _logger.info("app_shutdown", message="Executor and HTTP client closed")

    return _lifespan


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""
    app_settings = app_settings or settings
    config = load_config(settings=app_settings)

    application = FastAPI(
        title="kstack API",
        version=__version__,
        description=(
            "Archive articles from a publishing platform as content-addressed "
            "markdown and search them by keyword."
        ),
        lifespan=_make_lifespan(app_settings),
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=config.get("api", {}).get("cors_origins"))

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()


def run() -> None:
    """Serve the API with uvicorn using the configured host and port."""
    uvicorn.run(
        "kstack.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    run()
