# =============================================================================
# kstack/cli/archive.py — Article Archive CLI
# =============================================================================
#
# Operator entry point for every archive workflow outside the web server:
#
#   article   — scrape one article URL and print (or save) its markdown
#   author    — download a publication's free articles into the store
#   category  — download every trending publication of a category
#   all       — download every category listed in the category file
#   search    — rank stored articles against keywords
#   serve     — run the HTTP API with uvicorn
#
# All network commands share one FetchClient (and so one cookie jar) built
# by kstack.main.build_components; the client is closed on exit.
# =============================================================================

"""CLI for the article archive.

Usage::

    python -m kstack.cli.archive article https://example.substack.com/p/some-post
    python -m kstack.cli.archive author example --max 20 --skip-existing
    python -m kstack.cli.archive category 96 --max 10
    python -m kstack.cli.archive all
    python -m kstack.cli.archive search rust async --top-k 5
    python -m kstack.cli.archive serve
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from kstack.utils.errors import KstackError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_components() -> dict[str, Any]:
    from kstack.main import build_components, settings

    return build_components(settings)


def _print_summary(summary: Any) -> None:
    print(f"  Discovered: {summary.discovered:,}")
    print(f"  Stored:     {len(summary.stored):,}")
    print(f"  Skipped:    {len(summary.skipped):,}")
    print(f"  Failed:     {len(summary.failed):,}")
    for failure in summary.failed:
        print(f"    - {failure.url}: {failure.error}")


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_article(args: argparse.Namespace) -> int:
    """Scrape a single article; print the markdown or write it to --out."""
    from kstack.main import close_components
    from kstack.models.article import article_identifier
    from kstack.services.article_scraper import publication_name

    components = _load_components()
    try:
        document = await components["pipeline"].scrape_article(args.url)
        markdown = document.to_markdown()
        if args.store:
            identifier = article_identifier(args.subdomain or publication_name(args.url), args.url)
            path = components["store"].write(identifier, markdown)
            print(f"Stored {identifier} -> {path}", file=sys.stderr)
        if args.out:
            Path(args.out).write_text(markdown, encoding="utf-8")
            print(f"Wrote {args.out}", file=sys.stderr)
        elif not args.store:
            print(markdown)
    finally:
        await close_components(components)
    return 0


async def _handle_author(args: argparse.Namespace) -> int:
    from kstack.main import close_components, settings

    components = _load_components()
    limit = args.max or settings.max_articles_per_author
    print(f"Downloading up to {limit} articles from {args.subdomain}...")
    try:
        summary = await components["pipeline"].download_author(
            args.subdomain, limit, skip_existing=args.skip_existing
        )
    finally:
        await close_components(components)
    _print_summary(summary)
    return 0


async def _handle_category(args: argparse.Namespace) -> int:
    from kstack.main import close_components, settings

    components = _load_components()
    limit = args.max or settings.max_articles_per_author
    print(f"Downloading category {args.category_id} ({limit} articles per author)...")
    try:
        summary = await components["pipeline"].download_category(args.category_id, limit)
    finally:
        await close_components(components)
    _print_summary(summary)
    return 0


async def _handle_all(args: argparse.Namespace) -> int:
    """Download every category listed in the category file."""
    from kstack.config.loader import read_category_ids
    from kstack.main import close_components, settings

    categories_path = args.categories or settings.categories_path
    category_ids = read_category_ids(categories_path)
    if not category_ids:
        print(f"No categories configured in {categories_path}", file=sys.stderr)
        return 1

    components = _load_components()
    limit = args.max or settings.max_articles_per_author
    print(f"Downloading {len(category_ids)} categories: {', '.join(map(str, category_ids))}")
    try:
        summary = await components["pipeline"].download_all_configured(category_ids, limit)
    finally:
        await close_components(components)
    _print_summary(summary)
    return 0


def _handle_search(args: argparse.Namespace) -> int:
    """Search is synchronous — it only reads the local store."""
    from kstack.config.settings import Settings
    from kstack.providers.storage.content_store import ContentStore
    from kstack.services.search_service import SearchService

    app_settings = Settings()
    service = SearchService(ContentStore(app_settings.data_dir))
    response = service.search(args.keywords, args.top_k or app_settings.search_top_k)

    print(f"Scanned {response.total_scanned:,} articles")
    for rank, result in enumerate(response.results, 1):
        print(f"  {rank:>2}. {result.score:.4f}  {result.title} ({result.author})  {result.file}")
    return 0


def _handle_serve(args: argparse.Namespace) -> int:
    from kstack.main import run

    run()
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the archive CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m kstack.cli.archive",
        description="Archive platform articles as markdown and search them.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Archive commands")

    # -- article --
    article_parser = subparsers.add_parser("article", help="Scrape a single article URL")
    article_parser.add_argument("url", help="Article URL")
    article_parser.add_argument("--out", default=None, help="Write markdown to this file")
    article_parser.add_argument(
        "--store",
        action="store_true",
        help="Also write the article into the content store",
    )
    article_parser.add_argument(
        "--subdomain",
        default=None,
        help="Archive subdomain to store under; defaults to the URL host, "
        "so pass it for publications on a custom domain",
    )

    # -- author --
    author_parser = subparsers.add_parser("author", help="Download a publication's articles")
    author_parser.add_argument("subdomain", help="Publication subdomain, e.g. 'example'")
    author_parser.add_argument("--max", type=int, default=None, help="Maximum articles to fetch")
    author_parser.add_argument(
        "--skip-existing",
        action="store_true",
        dest="skip_existing",
        help="Do not refetch articles already in the store",
    )

    # -- category --
    category_parser = subparsers.add_parser("category", help="Download a category's trending publications")
    category_parser.add_argument("category_id", type=int, help="Numeric category ID")
    category_parser.add_argument("--max", type=int, default=None, help="Maximum articles per author")

    # -- all --
    all_parser = subparsers.add_parser("all", help="Download every configured category")
    all_parser.add_argument("--max", type=int, default=None, help="Maximum articles per author")
    all_parser.add_argument("--categories", default=None, help="Category file (default from settings)")

    # -- search --
    search_parser = subparsers.add_parser("search", help="Keyword search over stored articles")
    search_parser.add_argument("keywords", nargs="+", help="Keywords to rank by")
    search_parser.add_argument("--top-k", type=int, default=None, dest="top_k", help="Number of results")

    # -- serve --
    subparsers.add_parser("serve", help="Run the HTTP API")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

_ASYNC_HANDLERS = {
    "article": _handle_article,
    "author": _handle_author,
    "category": _handle_category,
    "all": _handle_all,
}
_SYNC_HANDLERS = {
    "search": _handle_search,
    "serve": _handle_serve,
}


def main(argv: list[str] | None = None) -> None:
    """CLI entry point; exits with the handler's status code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command in _SYNC_HANDLERS:
            exit_code = _SYNC_HANDLERS[args.command](args)
        else:
            exit_code = asyncio.run(_ASYNC_HANDLERS[args.command](args))
    except KstackError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        exit_code = 130

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
