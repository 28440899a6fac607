"""Unit tests for configuration loading and the category list format."""

from __future__ import annotations

from pathlib import Path

import pytest

from kstack.config.loader import _deep_merge, load_config, parse_category_ids, read_category_ids
from kstack.config.settings import Settings
from kstack.utils.errors import ConfigurationError


class TestCategoryIds:
    def test_parse_mixed_lines(self) -> None:
        text = "96 Technology\n\n62\nabc\n-4 Neg\n0\n62 dup\n 7 x"
        assert parse_category_ids(text) == [96, 62, 7]

    def test_read_missing_file(self, tmp_path: Path) -> None:
        assert read_category_ids(tmp_path / "absent.txt") == []

    def test_read_file(self, tmp_path: Path) -> None:
        path = tmp_path / "categories.txt"
        path.write_text("4 Technology\n62 Business\n", encoding="utf-8")
        assert read_category_ids(path) == [4, 62]


class TestLoadConfig:
    def test_settings_override_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "app:\n  name: kstack\n  port: 1111\nsearch:\n  top_k: 3\napi:\n  max_categories_bytes: 10240\n",
            encoding="utf-8",
        )
        settings = Settings(app_port=9999, search_top_k=5, _env_file=None)

        config = load_config(str(config_file), settings=settings)

        assert config["app"]["port"] == 9999
        assert config["app"]["name"] == "kstack"
        assert config["search"]["top_k"] == 5
        assert config["api"]["max_categories_bytes"] == 10240

    def test_missing_yaml_uses_settings(self, tmp_path: Path) -> None:
        settings = Settings(data_dir="/srv/archive", _env_file=None)
        config = load_config(str(tmp_path / "nope.yaml"), settings=settings)
        assert config["storage"]["data_dir"] == "/srv/archive"

    def test_non_mapping_yaml_is_rejected(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(str(config_file), settings=Settings(_env_file=None))

    def test_malformed_yaml_is_rejected(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("app: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(str(config_file), settings=Settings(_env_file=None))

    def test_deep_merge_is_recursive(self) -> None:
        base = {"a": {"b": 1, "c": 2}, "d": 1}
        _deep_merge(base, {"a": {"c": 3}, "e": 4})
        assert base == {"a": {"b": 1, "c": 3}, "d": 1, "e": 4}
