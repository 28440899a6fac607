"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ──────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  — Static defaults checked into the repo
#   2. .env file           — Local operator overrides (not committed)
#   3. Environment vars    — Set at deploy time
#
# load_config() reads the YAML file first, then deep-merges the
# Settings-derived values on top.
#
# The category list is a separate plain-text file (one ID per line) that
# operators edit by hand or through the /api/v1/categories endpoint;
# parse_category_ids() turns its text into integers.
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml

from kstack.config.settings import Settings
from kstack.utils.errors import ConfigurationError


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Settings instance to merge; a fresh one is built when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML: {exc}", source=str(config_path)) from exc
        if not isinstance(yaml_config, dict):
            raise ConfigurationError("Top level must be a mapping", source=str(config_path))
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "storage": {
            "data_dir": settings.data_dir,
            "categories_path": settings.categories_path,
        },
        "fetch": {
            "max_retries": settings.fetch_max_retries,
            "timeout": settings.fetch_timeout,
            "connect_retry_delay": settings.connect_retry_delay,
            "rate_limit_retry_delay": settings.rate_limit_retry_delay,
        },
        "scrape": {
            "max_articles_per_author": settings.max_articles_per_author,
            "courtesy_delay": settings.courtesy_delay,
        },
        "search": {
            "top_k": settings.search_top_k,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def parse_category_ids(text: str) -> list[int]:
    """Parse the category list format into positive integer IDs.

    Each line is either a bare integer or an integer followed by a space
    and a free-form label (``"96 Technology"``).  Blank, malformed and
    non-positive lines are ignored.  Order is kept and duplicates dropped.
    """
    ids: dict[int, None] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        head = line.split(" ", 1)[0]
        try:
            value = int(head)
        except ValueError:
            continue
        if value > 0:
            ids[value] = None
    return list(ids)


def read_category_ids(path: str | Path) -> list[int]:
    """Read and parse a category file; a missing file yields no categories."""
    category_path = Path(path)
    if not category_path.exists():
        return []
    return parse_category_ids(category_path.read_text(encoding="utf-8"))
