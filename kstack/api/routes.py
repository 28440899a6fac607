"""FastAPI API routes for the article archive.

Service dependencies are resolved from ``app.state`` via FastAPI's
``Depends`` using the ``Annotated`` pattern.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                      Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/health                GET     Health check + stored article count
# /api/v1/status                GET     Scrape-in-progress flag + recent logs
# /api/v1/scrape                POST    Start an archive run (no-op if running)
# /api/v1/search?kws=a,b        GET     Keyword search over the store
# /api/v1/articles/{hash}       GET     Stored markdown by content hash
# /api/v1/categories            GET     Category list (raw text + parsed IDs)
# /api/v1/categories            PUT     Replace the category list
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import PlainTextResponse

from kstack.api.schemas import (
    CategoriesResponse,
    HealthResponse,
    ScrapeStartResponse,
    ScrapeStatusResponse,
    SearchResponseBody,
)
from kstack.config.loader import parse_category_ids
from kstack.pipeline.scrape_job import ScrapeJobRunner
from kstack.providers.storage.content_store import ContentStore, is_content_hash
from kstack.services.search_service import SearchService
from kstack.utils.logging import LogBuffer, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

# Category uploads larger than this are rejected.
_DEFAULT_MAX_CATEGORIES_BYTES = 10 * 1024
_MAX_STATUS_LINES = 2000


# ---------------------------------------------------------------------------
# Dependency injection helpers — resolve singletons from app.state
# ---------------------------------------------------------------------------


def _get_store(request: Request) -> ContentStore:
    return request.app.state.store


def _get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service


def _get_scrape_runner(request: Request) -> ScrapeJobRunner:
    return request.app.state.scrape_runner


def _get_log_buffer(request: Request) -> LogBuffer:
    return request.app.state.log_buffer


StoreDep = Annotated[ContentStore, Depends(_get_store)]
SearchDep = Annotated[SearchService, Depends(_get_search_service)]
RunnerDep = Annotated[ScrapeJobRunner, Depends(_get_scrape_runner)]
LogBufferDep = Annotated[LogBuffer, Depends(_get_log_buffer)]


def _categories_path(request: Request) -> Path:
    return Path(request.app.state.categories_path)


# ---------------------------------------------------------------------------
# Health & status
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(request: Request, store: StoreDep) -> HealthResponse:
    """Return application health, version, and the stored article count."""
    count = await asyncio.to_thread(store.count)
    return HealthResponse(
        status="healthy",
        version=getattr(request.app.state, "version", "unknown"),
        articles_stored=count,
    )


@router.get("/status", response_model=ScrapeStatusResponse, summary="Scrape status and logs")
async def scrape_status(
    runner: RunnerDep,
    log_buffer: LogBufferDep,
    lines: int = Query(default=200, ge=1, le=_MAX_STATUS_LINES),
) -> ScrapeStatusResponse:
    return ScrapeStatusResponse(
        scraping=runner.is_running,
        last_summary=runner.last_summary,
        logs=log_buffer.lines()[-lines:],
    )


# ---------------------------------------------------------------------------
# Scraping
# ---------------------------------------------------------------------------


@router.post(
    "/scrape",
    response_model=ScrapeStartResponse,
    status_code=202,
    summary="Start an archive run over the configured categories",
)
async def start_scrape(runner: RunnerDep, response: Response) -> ScrapeStartResponse:
    """Start a run in the background; does nothing while one is active."""
    if not runner.start():
        response.status_code = 200
        return ScrapeStartResponse(started=False, message="Already scraping")
    _logger.info("scrape_triggered")
    return ScrapeStartResponse(started=True, message="Scrape started")


# ---------------------------------------------------------------------------
# Search & retrieval
# ---------------------------------------------------------------------------


@router.get("/search", response_model=SearchResponseBody, summary="Keyword search")
async def keyword_search(
    request: Request,
    search_service: SearchDep,
    kws: str = Query(..., description="Comma-separated keywords."),
    top_k: int | None = Query(default=None, ge=1, le=100),
) -> SearchResponseBody:
    keywords = [k.strip() for k in kws.split(",") if k.strip()]
    if not keywords:
        raise HTTPException(status_code=400, detail="kws must contain at least one keyword")
    limit = top_k or request.app.state.search_top_k

    start = time.perf_counter()
    # The scan is blocking file I/O over every shard.
    result = await asyncio.to_thread(search_service.search, keywords, limit)
    elapsed_ms = round((time.perf_counter() - start) * 1000, 2)

    return SearchResponseBody(
        keywords=keywords,
        results=result.results,
        total_scanned=result.total_scanned,
        elapsed_ms=elapsed_ms,
    )


@router.get(
    "/articles/{digest}",
    response_class=PlainTextResponse,
    summary="Stored article markdown by content hash",
)
async def get_article(digest: str, store: StoreDep) -> PlainTextResponse:
    if not is_content_hash(digest):
        raise HTTPException(status_code=400, detail="Expected a 64-character hex SHA-256 digest")
    text = await asyncio.to_thread(store.read_by_hash, digest)
    return PlainTextResponse(text, media_type="text/markdown; charset=utf-8")


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


@router.get("/categories", response_model=CategoriesResponse, summary="Configured categories")
async def get_categories(request: Request) -> CategoriesResponse:
    path = _categories_path(request)
    text = path.read_text(encoding="utf-8") if path.exists() else ""
    return CategoriesResponse(text=text, category_ids=parse_category_ids(text))


@router.put("/categories", response_model=CategoriesResponse, summary="Replace the category list")
async def put_categories(request: Request) -> CategoriesResponse:
    """Replace the category file with the raw request body (plain text)."""
    limit = getattr(request.app.state, "max_categories_bytes", _DEFAULT_MAX_CATEGORIES_BYTES)
    body = await request.body()
    if len(body) > limit:
        raise HTTPException(status_code=413, detail=f"Category list exceeds {limit} bytes")
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=400, detail="Category list must be UTF-8 text") from exc

    path = _categories_path(request)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    category_ids = parse_category_ids(text)
    _logger.info("categories_updated", count=len(category_ids))
    return CategoriesResponse(text=text, category_ids=category_ids)
