"""HTML article body to markdown conversion.

The converter walks the parsed body fragment in two modes:

# ─── Top level ──────────────────────────────────────────────────────────
#
# Direct children of the body root become blocks separated by a blank line:
# paragraphs, headings, lists, quotes, code blocks and embeds.  Unclassed
# ``<div>`` wrappers are unwrapped and their children treated as top level.
#
# ─── Inline ─────────────────────────────────────────────────────────────
#
# Everything inside a block is rendered into an ordered list of fragments
# (one per child node, in document order) which is then joined.  Emphasis
# markers keep a trailing space outside the marker so ``<b>hi </b>there``
# becomes ``**hi** there`` rather than ``**hi **there``.

Any tag outside the supported vocabulary raises
:class:`UnsupportedElementError` at the point it is found, carrying the tag
name, nesting depth and whether it was found at top level or inline.  The
converter holds no mutable state, so converting the same HTML twice yields
identical output.
"""

from __future__ import annotations

import structlog
from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from kstack.services.embed_renderer import EmbedRenderer
from kstack.utils.errors import UnsupportedElementError
from kstack.utils.logging import get_logger

_HEADINGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})
_BOLD = frozenset({"strong", "b"}) | _HEADINGS
_ITALIC = frozenset({"em", "i"})
_STRIKE = frozenset({"s", "strike", "del"})
_CODE = frozenset({"code", "pre"})
_LISTS = frozenset({"ul", "ol"})

# iframe sources that carry audio players.
AUDIO_EMBED_SIGNATURES: tuple[str, ...] = (
    "substack.com/api/v1/audio/",
    "substack.com/embed/podcast",
    "open.spotify.com/embed/episode",
    "open.spotify.com/embed/show",
    "embed.podcasts.apple.com",
    "w.soundcloud.com/player",
    "player.simplecast.com",
    "anchor.fm/",
)


def is_audio_embed(src: str) -> bool:
    return any(signature in src for signature in AUDIO_EMBED_SIGNATURES)


def wrap_emphasis(text: str, marker: str) -> str:
    """Wrap *text* in *marker*, keeping one trailing space outside.

    >>> wrap_emphasis("hi ", "**")
    '**hi** '
    """
    if not text.strip():
        return text
    if text.endswith(" "):
        return f"{marker}{text[:-1]}{marker} "
    return f"{marker}{text}{marker}"


def _classes(node: Tag) -> list[str]:
    return list(node.get("class") or [])


def _element_children(node: Tag) -> list[Tag]:
    return [child for child in node.children if isinstance(child, Tag)]


def _footnote_marker(node: Tag) -> str:
    return f"[^{node.get_text().strip()}]"


class MarkdownConverter:
    """Converts an article body fragment into markdown."""

    def __init__(
        self,
        embed_renderer: EmbedRenderer | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self._embeds = embed_renderer or EmbedRenderer()
        self._logger = logger or get_logger(__name__)

    def convert(self, article_html: str) -> str:
        """Convert a body HTML fragment; its top-level nodes become blocks."""
        soup = BeautifulSoup(article_html, "html.parser")
        markdown = self.convert_element(soup)
        self._logger.debug("markdown_converted", html_chars=len(article_html), markdown_chars=len(markdown))
        return markdown

    def convert_element(self, root: Tag) -> str:
        """Convert the children of an already-parsed body root."""
        return self._render_blocks(root, depth=0)

    # ------------------------------------------------------------------
    # Top level
    # ------------------------------------------------------------------

    def _render_blocks(self, parent: Tag, depth: int) -> str:
        parts: list[str] = []
        for child in parent.children:
            if isinstance(child, PreformattedString):
                continue
            if isinstance(child, NavigableString):
                text = str(child).strip()
                if text:
                    parts.append(f"\n\n{text}")
                continue
            if isinstance(child, Tag):
                parts.append(self._render_block(child, depth))
        return "".join(parts)

    def _render_block(self, node: Tag, depth: int) -> str:
        name = node.name.lower()
        classes = _classes(node)

        if name == "p":
            return "\n\n" + self.render_inline(node, depth + 1)
        if name in _HEADINGS:
            return f"\n\n{'#' * int(name[1])} {self.render_inline(node, depth + 1)}"
        if name in _LISTS:
            return "\n" + self._render_top_list(node, depth)
        if name == "blockquote" or (name == "div" and "pullquote" in classes):
            quoted = self.render_inline(node, depth + 1).strip()
            return "\n\n> " + quoted.replace("\n", "\n> ")
        if name == "pre":
            return f"\n\n```\n{node.get_text()}\n```"
        if name == "div":
            if not classes:
                return self._render_blocks(node, depth + 1)
            rendered = self._embeds.render(node, depth, self.render_inline)
            return f"\n\n{rendered}" if rendered else ""
        if name == "iframe":
            src = node.get("src") or ""
            if is_audio_embed(src):
                return f"\n\n[Audio]({src})"
            raise UnsupportedElementError("iframe", depth=depth, inner=False)
        if name == "hr":
            return "\n\n---"
        if name == "span":
            return node.get_text()
        if name == "a":
            return f"[{self.render_inline(node, depth + 1)}]({node.get('href') or ''})"
        raise UnsupportedElementError(name, depth=depth, inner=False)

    def _render_top_list(self, node: Tag, depth: int) -> str:
        ordered = node.name.lower() == "ol"
        lines: list[str] = []
        for index, item in enumerate(_element_children(node), 1):
            bullet = f"{index}." if ordered else "*"
            lines.append(f"\n{bullet} {self.render_inline(item, depth + 1).strip()}")
        return "".join(lines)

    # ------------------------------------------------------------------
    # Inline
    # ------------------------------------------------------------------

    def render_inline(self, node: Tag, depth: int = 0) -> str:
        """Render *node*'s children as inline markdown."""
        if not _element_children(node):
            return node.get_text()
        rendered = "".join(self.inline_fragments(node, depth))
        return rendered if rendered else node.get_text()

    def inline_fragments(self, node: Tag, depth: int = 0) -> list[str]:
        """Rendered fragments of *node*'s children in document order."""
        fragments: list[str] = []
        for child in node.children:
            if isinstance(child, PreformattedString):
                continue
            if isinstance(child, NavigableString):
                fragments.append(str(child))
                continue
            if not isinstance(child, Tag):
                continue
            if child.name.lower() in _LISTS and fragments and not fragments[-1].endswith("\n"):
                fragments.append("\n")
            fragments.append(self._render_inline_element(child, depth))
        return fragments

    def _render_inline_element(self, node: Tag, depth: int) -> str:
        name = node.name.lower()
        classes = _classes(node)
        inner = depth + 1

        if name == "br":
            return "\n"
        if name == "span":
            return _footnote_marker(node) if "footnote-anchor" in classes else node.get_text()
        if name in _BOLD:
            return wrap_emphasis(self.render_inline(node, inner), "**")
        if name in _ITALIC or name in _STRIKE:
            return wrap_emphasis(self.render_inline(node, inner), "*")
        if name in _CODE:
            return wrap_emphasis(node.get_text(), "`")
        if name in _LISTS:
            return self._render_nested_list(node, depth)
        if name == "li":
            return self.render_inline(node, inner)
        if name == "p":
            return self.render_inline(node, inner) + "\n"
        if name == "blockquote":
            return ">" + self.render_inline(node, inner).strip().replace("\n", "\n>")
        if name == "a":
            if "footnote-anchor" in classes:
                return _footnote_marker(node)
            return f"[{self.render_inline(node, inner)}]({node.get('href') or ''})"
        if name == "hr":
            return "---"
        if name in ("sup", "sub"):
            return f"<{name}>{node.get_text()}</{name}>"
        if name == "div":
            if not classes:
                return self.render_inline(node, inner)
            return self._embeds.render(node, depth, self.render_inline)
        if name == "iframe":
            src = node.get("src") or ""
            if is_audio_embed(src):
                return f"[Audio]({src})"
            raise UnsupportedElementError("iframe", depth=depth, inner=True)
        raise UnsupportedElementError(name, depth=depth, inner=True)

    def _render_nested_list(self, node: Tag, depth: int) -> str:
        ordered = node.name.lower() == "ol"
        lines: list[str] = []
        for index, item in enumerate(_element_children(node), 1):
            bullet = f"{index}." if ordered else "*"
            text = self.render_inline(item, depth + 1).strip().replace("\n", "\n  ")
            lines.append(f"  {bullet} {text}")
        return "\n".join(lines)
