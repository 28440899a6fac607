# =============================================================================
# kstack/services/article_scraper.py — Single Article Scrape Service
# =============================================================================
#
# Turns one article URL into an ArticleDocument:
#   1. Page fetch      — through the shared IHttpFetcher (retries, cookies)
#   2. Metadata        — title, subtitle, date and author from the page markup,
#                        falling back to the embedded preloads payload
#   3. Body            — the post's body_html from the preloads payload, the
#                        by-id API for app-style links, or the rendered
#                        div.body.markup as a last resort
#   4. Conversion      — MarkdownConverter renders the body fragment
#
# Nothing is written here; the pipeline stores the document only after the
# whole scrape succeeded.
# =============================================================================

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any
from urllib.parse import urlparse

import structlog
from bs4 import BeautifulSoup, Tag

from kstack.interfaces.http_fetcher import IHttpFetcher
from kstack.models.article import ArticleDocument
from kstack.services.markdown_converter import MarkdownConverter
from kstack.utils.errors import MissingRequiredFieldError
from kstack.utils.logging import get_logger

# ─── Date patterns ───
# Dates shown in the post header, e.g. "Mar 3, 2024" or "03.03.24".
_DATE_PATTERNS = (
    re.compile(r"(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec) (0?[1-9]|[12][0-9]|3[01]), \d{4}"),
    re.compile(r"(0[1-9]|1[0-2])\.(0[1-9]|[12][0-9]|3[01])\.(\d{4}|\d{2})"),
)
# Escaped post_date inside the raw preloads script.
_RAW_POST_DATE = re.compile(r'\\"post_date\\":\\"(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?Z)\\"')
# Header texts longer than this are paragraphs, not date lines.
_MAX_DATE_TEXT = 100

# ─── Preloads payload ───
# window._preloads = JSON.parse("<JS string literal holding JSON>")
_PRELOADS_MARKER = "window._preloads"
_PRELOADS_PATTERN = re.compile(r"^window\._preloads\s*=\s*JSON\.parse\((?P<literal>.*)\)\s*;?\s*$", re.DOTALL)

# ─── App-style post links ───
_APP_POST_PREFIX = "https://substack.com/home/post/p-"
_POST_BY_ID_URL = "https://substack.com/api/v1/posts/by-id/{post_id}"


def format_post_date(iso_date: str) -> str:
    """Format an ISO timestamp the way post headers show it ("Mar 3, 2024")."""
    parsed = datetime.fromisoformat(iso_date.replace("Z", "+00:00"))
    return f"{parsed:%b} {parsed.day}, {parsed.year}"


def parse_preloads(script_text: str) -> dict[str, Any] | None:
    """Decode the preloads script into its JSON payload.

    The script assigns ``JSON.parse(<string literal>)``; the literal is itself
    valid JSON, so the payload is decoded twice.  Returns None when the
    script does not have that shape.
    """
    match = _PRELOADS_PATTERN.match(script_text.strip())
    if match is None:
        return None
    try:
        decoded = json.loads(match.group("literal"))
        payload = json.loads(decoded) if isinstance(decoded, str) else decoded
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None


def publication_name(url: str) -> str:
    """Subdomain of a publication URL, or the bare host for custom domains."""
    host = urlparse(url).hostname or ""
    if host.endswith(".substack.com"):
        return host.split(".", 1)[0]
    return host


def _text(node: Tag | None) -> str | None:
    if node is None:
        return None
    text = node.get_text().strip()
    return text or None


def _meta(soup: BeautifulSoup, **attrs: str) -> str | None:
    node = soup.find("meta", attrs=attrs)
    if node is None:
        return None
    content = (node.get("content") or "").strip()
    return content or None


def _byline_author(post: dict[str, Any]) -> str | None:
    for byline in post.get("publishedBylines") or []:
        if isinstance(byline, dict) and byline.get("name"):
            return str(byline["name"])
    return None


class ArticleScraper:
    """Fetches one article page and builds its :class:`ArticleDocument`."""

    def __init__(
        self,
        http_fetcher: IHttpFetcher,
        converter: MarkdownConverter | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self._fetcher = http_fetcher
        self._converter = converter or MarkdownConverter()
        self._logger = logger or get_logger(__name__)

    async def scrape(self, url: str) -> ArticleDocument:
        """Fetch *url* and convert it.

        Raises:
            FetchError: when the page cannot be fetched.
            MissingRequiredFieldError: when title, date or body cannot be found.
            UnsupportedElementError / UnsupportedEmbedVariantError: when the
                body contains markup outside the supported vocabulary.
        """
        self._logger.info("article_scrape_started", url=url)
        response = await self._fetcher.fetch(url)
        soup = BeautifulSoup(response.text, "html.parser")
        post = self._preloaded_post(soup)

        title = self._extract_title(soup)
        subtitle = self._extract_subtitle(soup)
        date = self._extract_date(soup, post, response.text)
        author = _meta(soup, name="author") or _byline_author(post) or publication_name(url)

        if url.startswith(_APP_POST_PREFIX):
            api_post = await self._fetch_post_by_id(url)
            body_html = api_post.get("body_html")
            author = _meta(soup, name="author") or _byline_author(api_post) or author
            body = self._converter.convert(body_html) if body_html else None
        elif post.get("body_html"):
            body = self._converter.convert(post["body_html"])
        else:
            markup = soup.select_one("div.body.markup")
            body = self._converter.convert_element(markup) if markup is not None else None
        if body is None:
            raise MissingRequiredFieldError("body", source=url)

        document = ArticleDocument(
            url=url,
            title=title,
            subtitle=subtitle,
            date=date,
            author=author,
            body=body,
        )
        self._logger.info("article_scraped", url=url, title=title, body_chars=len(body))
        return document

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_title(soup: BeautifulSoup) -> str:
        title = (
            _text(soup.select_one("h1.post-title"))
            or _text(soup.select_one("h2.pencraft"))
            or _meta(soup, property="og:title")
        )
        if title is None:
            raise MissingRequiredFieldError("title")
        return title

    @staticmethod
    def _extract_subtitle(soup: BeautifulSoup) -> str | None:
        subtitle = _text(soup.select_one("h3.subtitle"))
        if subtitle is None:
            heading = soup.select_one("h2.pencraft")
            if heading is not None:
                subtitle = _text(heading.find_next_sibling())
        return subtitle or _meta(soup, name="description")

    @staticmethod
    def _extract_date(soup: BeautifulSoup, post: dict[str, Any], raw_page: str) -> str:
        for node in soup.select("div.pencraft"):
            text = node.get_text().strip()
            if len(text) >= _MAX_DATE_TEXT:
                continue
            for pattern in _DATE_PATTERNS:
                match = pattern.search(text)
                if match is not None:
                    return match.group(0)

        post_date = post.get("post_date")
        if not post_date:
            match = _RAW_POST_DATE.search(raw_page)
            post_date = match.group(1) if match else None
        if post_date:
            try:
                return format_post_date(post_date)
            except ValueError:
                pass
        raise MissingRequiredFieldError("date")

    # ------------------------------------------------------------------
    # Body sources
    # ------------------------------------------------------------------

    def _preloaded_post(self, soup: BeautifulSoup) -> dict[str, Any]:
        for script in soup.find_all("script"):
            text = script.get_text()
            if not text.startswith(_PRELOADS_MARKER):
                continue
            payload = parse_preloads(text)
            if payload is None:
                self._logger.warning("preloads_unparseable", chars=len(text))
                return {}
            post = payload.get("post")
            return post if isinstance(post, dict) else {}
        return {}

    async def _fetch_post_by_id(self, url: str) -> dict[str, Any]:
        post_id = re.split(r"[/?#]", url[len(_APP_POST_PREFIX):], maxsplit=1)[0]
        response = await self._fetcher.fetch(_POST_BY_ID_URL.format(post_id=post_id))
        payload = json.loads(response.text)
        post = payload.get("post") if isinstance(payload, dict) else None
        if not isinstance(post, dict):
            raise MissingRequiredFieldError("post", source=url)
        return post
