"""Markdown stereotypes for the platform's embed widgets.

Posts embed images, galleries, other posts, videos, podcasts and social
media as classed ``<div>`` containers whose metadata is a JSON document in
a ``data-attrs`` attribute (on the container or on a descendant such as the
``<img>``).  Each known class name maps to a small renderer that projects
that JSON into one or a few lines of markdown.

The vocabulary is closed: a class name that is neither rendered nor
deliberately silenced raises :class:`UnsupportedEmbedVariantError`, which is
fatal for the article being converted.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from typing import Any

from bs4 import Tag

from kstack.utils.errors import MissingRequiredFieldError, UnsupportedEmbedVariantError

# Renders the inline markdown of a child node at a given depth.
InlineRenderer = Callable[[Tag, int], str]

# Widgets with no archival value: polls, paywall markers, subscribe boxes,
# chat promos and app-install banners.
SILENT_CLASSES: frozenset[str] = frozenset(
    {
        "poll-embed",
        "paywall-jump",
        "subscription-widget-wrap",
        "subscription-widget-wrap-editor",
        "community-chat",
        "install-substack-app-embed",
    }
)


def format_byline(names: Sequence[str], fallback: str = "") -> str:
    """Join author names the way the platform prints bylines.

    >>> format_byline([], "The Digest")
    'The Digest'
    >>> format_byline(["Ann", "Bo", "Cy"])
    'By Ann, Bo, and Cy'
    """
    names = [n for n in names if n]
    if not names:
        return fallback
    if len(names) == 1:
        return f"By {names[0]}"
    if len(names) == 2:
        return f"By {names[0]} and {names[1]}"
    return f"By {', '.join(names[:-1])}, and {names[-1]}"


def embed_attrs(node: Tag, variant: str, *, required: bool = True) -> dict[str, Any]:
    """Parse the ``data-attrs`` JSON of *node* or its first carrier descendant.

    The HTML parser has already decoded entities such as ``&quot;``.
    """
    raw = node.get("data-attrs")
    if raw is None:
        carrier = node.find(attrs={"data-attrs": True})
        raw = carrier.get("data-attrs") if carrier is not None else None
    if raw is None:
        if required:
            raise MissingRequiredFieldError("data-attrs", source=variant)
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MissingRequiredFieldError("data-attrs", source=variant) from exc
    if not isinstance(data, dict):
        raise MissingRequiredFieldError("data-attrs", source=variant)
    return data


def _require(attrs: dict[str, Any], key: str, variant: str) -> Any:
    value = attrs.get(key)
    if value in (None, ""):
        raise MissingRequiredFieldError(key, source=variant)
    return value


def _text(value: Any) -> str:
    """Coerce a JSON field to stripped text; null and missing become empty."""
    if value is None:
        return ""
    return str(value).strip()


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _names(entries: Any) -> list[str]:
    if not isinstance(entries, list):
        return []
    return [_text(e.get("name")) for e in entries if isinstance(e, dict)]


def _one_line(value: Any) -> str:
    return " ".join(_text(value).split())


def _human_size(size: Any) -> str:
    try:
        value = float(size)
    except (TypeError, ValueError):
        return str(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024 or unit == "MB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} MB"


def _framed(lines: list[str]) -> str:
    return "\n".join(["---", *[line for line in lines if line], "---"])


class EmbedRenderer:
    """Dispatches a classed container to the renderer for its class name."""

    def __init__(self) -> None:
        self._renderers: dict[str, Callable[[Tag, int, InlineRenderer], str]] = {
            "captioned-image-container": self._image,
            "image-gallery-embed": self._gallery,
            "captioned-button-wrap": self._captioned_button,
            "button-wrapper": self._button,
            "footnote": self._footnote,
            "digest-post-embed": self._digest_post,
            "embedded-post-wrap": self._embedded_post,
            "calendly-embed": self._calendly,
            "datawrapper-wrap": self._datawrapper,
            "youtube-wrap": self._youtube,
            "vimeo-wrap": self._vimeo,
            "apple-podcast-container": self._apple_podcast,
            "spotify-wrap": self._spotify,
            "native-audio-embed": self._native_audio,
            "tweet": self._tweet,
            "instagram": self._instagram,
            "bluesky-wrap": self._bluesky,
            "tiktok-wrap": self._tiktok,
            "file-embed-wrapper": self._file_download,
        }

    @property
    def known_classes(self) -> frozenset[str]:
        return frozenset(self._renderers) | SILENT_CLASSES

    def render(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        """Render *node* by the first of its classes that is a known embed."""
        classes = list(node.get("class") or [])
        for class_name in classes:
            if class_name in SILENT_CLASSES:
                return ""
            renderer = self._renderers.get(class_name)
            if renderer is not None:
                return renderer(node, depth, inline)
        raise UnsupportedEmbedVariantError(" ".join(classes) or node.name, depth=depth)

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def _image(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        attrs = embed_attrs(node, "captioned-image-container", required=False)
        src = attrs.get("src")
        if not src:
            img = node.find("img")
            src = img.get("src") if img is not None else None
        if not src:
            raise MissingRequiredFieldError("src", source="captioned-image-container")
        caption_node = node.find("figcaption")
        caption = caption_node.get_text().strip() if caption_node is not None else ""
        return f"[Image]({src}): {caption}" if caption else f"[Image]({src})"

    def _gallery(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        attrs = embed_attrs(node, "image-gallery-embed")
        gallery = _mapping(attrs.get("gallery"))
        images = gallery.get("images")
        if not isinstance(images, list):
            images = []
        lines = [
            f"{i}. [Image]({image.get('src', '')})"
            for i, image in enumerate(images, 1)
            if isinstance(image, dict)
        ]
        caption = _text(gallery.get("caption"))
        if caption:
            lines.append(caption)
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Text widgets
    # ------------------------------------------------------------------

    def _captioned_button(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        attrs = embed_attrs(node, "captioned-button-wrap")
        url = _require(attrs, "url", "captioned-button-wrap")
        text = attrs.get("text") or url
        preamble_node = node.find(class_="preamble")
        preamble = inline(preamble_node, depth + 1).strip() if preamble_node is not None else ""
        link = f"[{text}]({url})"
        return f"*{preamble}*\n{link}" if preamble else link

    def _button(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        attrs = embed_attrs(node, "button-wrapper")
        url = _require(attrs, "url", "button-wrapper")
        return f"[{attrs.get('text') or url}]({url})"

    def _footnote(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        children = [c for c in node.children if isinstance(c, Tag)]
        if len(children) != 2:
            raise MissingRequiredFieldError("footnote", source="footnote")
        marker, body = children
        return f"[^{marker.get_text().strip()}]: {inline(body, depth + 1).strip()}"

    # ------------------------------------------------------------------
    # Cross-posts
    # ------------------------------------------------------------------

    def _digest_post(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        attrs = embed_attrs(node, "digest-post-embed")
        title = _require(attrs, "title", "digest-post-embed")
        url = attrs.get("canonical_url") or attrs.get("url") or ""
        publication = _text(attrs.get("publication_name")) or _text(_mapping(attrs.get("pub")).get("name"))
        byline = format_byline(_names(attrs.get("publishedBylines")), publication)
        cover = attrs.get("cover_image")
        caption = _text(attrs.get("caption"))
        cta = attrs.get("cta") or "Read more"
        return _framed(
            [
                f"**{title}**",
                byline,
                f"[Cover image]({cover})" if cover else "",
                caption,
                f"[{cta}]({url})" if url else "",
            ]
        )

    def _embedded_post(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        attrs = embed_attrs(node, "embedded-post-wrap")
        title = _require(attrs, "title", "embedded-post-wrap")
        url = attrs.get("url") or ""
        publication = _text(attrs.get("publication_name"))
        byline = format_byline(_names(attrs.get("bylines")), publication)
        excerpt = _one_line(attrs.get("truncated_body_text"))
        read_on = f"Read on {publication}" if publication else "Read more"
        return _framed(
            [
                f"**{title}**",
                byline,
                f"> {excerpt}" if excerpt else "",
                f"[{read_on}]({url})" if url else "",
            ]
        )

    # ------------------------------------------------------------------
    # Interactive embeds
    # ------------------------------------------------------------------

    def _calendly(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        url = _require(embed_attrs(node, "calendly-embed"), "url", "calendly-embed")
        return f"Book a meeting with the author: [{url}]({url})"

    def _datawrapper(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        attrs = embed_attrs(node, "datawrapper-wrap")
        url = _require(attrs, "url", "datawrapper-wrap")
        title = attrs.get("title") or "Interactive chart"
        description = _text(attrs.get("description"))
        label = f"{title}: {description}" if description else title
        thumbnail = attrs.get("thumbnail_url_full") or attrs.get("thumbnail_url")
        link = f"[{label}]({url})"
        return f"{link} ([static chart]({thumbnail}))" if thumbnail else link

    # ------------------------------------------------------------------
    # Video / audio
    # ------------------------------------------------------------------

    def _youtube(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        attrs = embed_attrs(node, "youtube-wrap")
        video_id = _require(attrs, "videoId", "youtube-wrap")
        url = f"https://www.youtube.com/watch?v={video_id}"
        if attrs.get("startTime"):
            url += f"&t={attrs['startTime']}"
        return f"[YouTube video]({url})"

    def _vimeo(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        video_id = _require(embed_attrs(node, "vimeo-wrap"), "videoId", "vimeo-wrap")
        return f"[Vimeo video](https://vimeo.com/{video_id})"

    def _apple_podcast(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        attrs = embed_attrs(node, "apple-podcast-container")
        url = _require(attrs, "url", "apple-podcast-container")
        title = attrs.get("title") or attrs.get("podcastTitle") or "Podcast"
        byline = attrs.get("podcastByline")
        label = f"Podcast: {title} by {byline}" if byline else f"Podcast: {title}"
        return f"[{label}]({url})"

    def _spotify(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        attrs = embed_attrs(node, "spotify-wrap")
        url = _require(attrs, "url", "spotify-wrap")
        title = attrs.get("title") or "Spotify"
        subtitle = attrs.get("subtitle")
        label = f"Spotify: {title} - {subtitle}" if subtitle else f"Spotify: {title}"
        return f"[{label}]({url})"

    def _native_audio(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        attrs = embed_attrs(node, "native-audio-embed")
        upload_id = _require(attrs, "mediaUploadId", "native-audio-embed")
        return f"[Audio](https://substack.com/api/v1/audio/upload/{upload_id}/src)"

    # ------------------------------------------------------------------
    # Social posts
    # ------------------------------------------------------------------

    def _tweet(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        attrs = embed_attrs(node, "tweet")
        url = _require(attrs, "url", "tweet")
        username = attrs.get("username") or attrs.get("name") or "unknown"
        text = _one_line(attrs.get("full_text"))
        link = f"[Tweet by @{username}]({url})"
        return f"{link}: {text}" if text else link

    def _instagram(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        attrs = embed_attrs(node, "instagram")
        post_id = _require(attrs, "instagram_id", "instagram")
        author = attrs.get("author_name") or "unknown"
        return f"[Instagram post by {author}](https://www.instagram.com/p/{post_id}/)"

    def _bluesky(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        attrs = embed_attrs(node, "bluesky-wrap")
        post_id = _require(attrs, "postId", "bluesky-wrap")
        handle = attrs.get("authorHandle") or attrs.get("authorDid") or "unknown"
        url = f"https://bsky.app/profile/{handle}/post/{post_id}"
        text = _one_line(attrs.get("text"))
        link = f"[Bluesky post by @{handle}]({url})"
        return f"{link}: {text}" if text else link

    def _tiktok(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        attrs = embed_attrs(node, "tiktok-wrap")
        url = _require(attrs, "url", "tiktok-wrap")
        author = attrs.get("author") or "unknown"
        title = _one_line(attrs.get("title"))
        label = f"TikTok by {author}: {title}" if title else f"TikTok by {author}"
        return f"[{label}]({url})"

    def _file_download(self, node: Tag, depth: int, inline: InlineRenderer) -> str:
        attrs = embed_attrs(node, "file-embed-wrapper")
        url = _require(attrs, "url", "file-embed-wrapper")
        filename = attrs.get("filename") or "file"
        details = [d for d in (attrs.get("filetype"), attrs.get("filesize")) if d]
        if attrs.get("filesize"):
            details[-1] = _human_size(attrs["filesize"])
        suffix = f" ({', '.join(str(d) for d in details)})" if details else ""
        return f"[Download {filename}{suffix}]({url})"
