"""Unit tests for the archive CLI parser and the offline subcommands."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from kstack.cli.archive import _build_parser, main
from kstack.models.article import ArticleDocument
from kstack.providers.storage.content_store import ContentStore, content_hash


class TestParser:
    def test_author_options(self) -> None:
        args = _build_parser().parse_args(["author", "example", "--max", "20", "--skip-existing"])
        assert (args.command, args.subdomain, args.max, args.skip_existing) == ("author", "example", 20, True)

    def test_category_id_is_numeric(self) -> None:
        args = _build_parser().parse_args(["category", "96"])
        assert args.category_id == 96
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["category", "tech"])

    def test_search_takes_many_keywords(self) -> None:
        args = _build_parser().parse_args(["search", "rust", "async", "--top-k", "3"])
        assert args.keywords == ["rust", "async"]
        assert args.top_k == 3

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 1
        assert "usage:" in capsys.readouterr().out


class TestSearchCommand:
    def test_empty_store(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setenv("KSTACK_DATA_DIR", str(tmp_path / "data"))
        with pytest.raises(SystemExit) as exc_info:
            main(["search", "rust"])
        assert exc_info.value.code == 0
        assert "Scanned 0 articles" in capsys.readouterr().out

    def test_prints_ranked_hits(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        store = ContentStore(tmp_path / "data")
        document = ArticleDocument(
            url="https://a.substack.com/p/rust",
            title="Rust Notes",
            date="Mar 3, 2024",
            author="Ann",
            body="\n\nrust rust",
        )
        store.write("a/rust", document.to_markdown())
        monkeypatch.setenv("KSTACK_DATA_DIR", str(tmp_path / "data"))

        with pytest.raises(SystemExit):
            main(["search", "rust", "--top-k", "1"])

        out = capsys.readouterr().out
        assert "Scanned 1 articles" in out
        assert "Rust Notes (Ann)" in out


class TestAllCommand:
    def test_no_categories_fails(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["all", "--categories", str(tmp_path / "none.txt")])
        assert exc_info.value.code == 1
        assert "No categories configured" in capsys.readouterr().err


class TestArticleCommand:
    @staticmethod
    def _patch_components(monkeypatch: pytest.MonkeyPatch, store: ContentStore, url: str) -> None:
        document = ArticleDocument(url=url, title="Notes", date="Mar 3, 2024", author="Ann", body="\n\nbody")
        pipeline = MagicMock()
        pipeline.scrape_article = AsyncMock(return_value=document)
        monkeypatch.setattr(
            "kstack.cli.archive._load_components", lambda: {"pipeline": pipeline, "store": store}
        )
        monkeypatch.setattr("kstack.main.close_components", AsyncMock())

    def test_store_uses_subdomain_option_for_custom_domains(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        store = ContentStore(tmp_path / "data")
        url = "https://www.example.com/p/notes"
        self._patch_components(monkeypatch, store, url)

        with pytest.raises(SystemExit) as exc_info:
            main(["article", url, "--store", "--subdomain", "alpha"])

        assert exc_info.value.code == 0
        assert store.exists("alpha/notes")
        assert store.path_for("alpha/notes").name == f"{content_hash('alpha/notes')}.md"

    def test_store_defaults_to_url_subdomain(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        store = ContentStore(tmp_path / "data")
        url = "https://alpha.substack.com/p/notes"
        self._patch_components(monkeypatch, store, url)

        with pytest.raises(SystemExit):
            main(["article", url, "--store"])

        assert store.exists("alpha/notes")
