"""Content-addressed markdown store.

Articles are addressed by the SHA-256 of their identifier
(``{subdomain}/{slug}``) and laid out in two levels of one-character shard
directories taken from the first two hex digits of the hash::

    {base}/{h[0]}/{h[1]}/{h}.md

The layout is fixed: the search service walks exactly these 256 shards, so
every read and write of article files goes through this module.

Writes go to a temporary file in the shard directory and are moved into
place with ``os.replace``, so a reader or a cancelled scrape never observes
a half-written article.  Concurrent writers of the same identifier are
tolerated; the last rename wins.
"""

from __future__ import annotations

import hashlib
import os
import re
import tempfile
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import structlog

from kstack.utils.errors import ArticleNotFoundError
from kstack.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_HASH_RE = re.compile(r"^[0-9a-f]{64}$")
_SUFFIX = ".md"
SHARD_COUNT = 256


def content_hash(identifier: str) -> str:
    """Lowercase hex SHA-256 digest of *identifier*."""
    return hashlib.sha256(identifier.encode("utf-8")).hexdigest()


def is_content_hash(value: str) -> bool:
    return bool(_HASH_RE.match(value))


def shard_names() -> Iterator[str]:
    """Yield the 256 two-digit shard names ``00`` .. ``ff``."""
    for i in range(SHARD_COUNT):
        yield f"{i:02x}"


@dataclass(frozen=True)
class Shard:
    """One shard directory and the article files it holds."""

    name: str
    path: Path
    files: tuple[Path, ...]


class ContentStore:
    """Filesystem store of article markdown, sharded by identifier hash.

    Parameters
    ----------
    base_dir:
        Root of the store.  Created lazily on first write.
    """

    def __init__(self, base_dir: str | Path) -> None:
        self._base = Path(base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base

    # ------------------------------------------------------------------
    # Addressing
    # ------------------------------------------------------------------

    def path_for_hash(self, digest: str) -> Path:
        return self._base / digest[0] / digest[1] / f"{digest}{_SUFFIX}"

    def path_for(self, identifier: str) -> Path:
        return self.path_for_hash(content_hash(identifier))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def exists(self, identifier: str) -> bool:
        return self.path_for(identifier).is_file()

    def write(self, identifier: str, body: str) -> Path:
        """Store *body* under *identifier*, replacing any previous version."""
        target = self.path_for(identifier)
        target.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".tmp-", suffix=_SUFFIX)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
                fh.write(body)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        _logger.debug("article_stored", identifier=identifier, path=str(target))
        return target

    def read(self, identifier: str) -> str:
        return self.read_by_hash(content_hash(identifier))

    def read_by_hash(self, digest: str) -> str:
        """Return the stored markdown for a content hash.

        Raises
        ------
        ArticleNotFoundError
            If *digest* is not a 64-digit lowercase hex string or no article
            is stored under it.
        """
        if not is_content_hash(digest):
            raise ArticleNotFoundError(digest)
        path = self.path_for_hash(digest)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ArticleNotFoundError(digest) from exc

    def iter_shards(self) -> Iterator[Shard]:
        """Lazily walk all 256 shards in order.

        Each call starts again from ``00``.  A missing shard directory is
        reported as an empty shard.
        """
        for name in shard_names():
            path = self._base / name[0] / name[1]
            if path.is_dir():
                files = tuple(
                    sorted(
                        p for p in path.iterdir()
                        if p.suffix == _SUFFIX and not p.name.startswith(".")
                    )
                )
            else:
                files = ()
            yield Shard(name=name, path=path, files=files)

    def iter_documents(self) -> Iterator[tuple[Path, str]]:
        """Yield ``(path, text)`` for every stored article."""
        for shard in self.iter_shards():
            for path in shard.files:
                try:
                    yield path, path.read_text(encoding="utf-8")
                except FileNotFoundError:
                    # Replaced or removed between listing and reading.
                    continue

    def count(self) -> int:
        return sum(len(shard.files) for shard in self.iter_shards())
