"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# This class uses pydantic-settings to read configuration from TWO sources
# (in priority order):
#
#   1. **Environment variables** — e.g., KSTACK_DATA_DIR=/mnt/archive
#      (highest priority — always wins)
#   2. **.env file** — key=value lines in the project root .env file
#
# The mapping is automatic: field name `data_dir` maps to env var
# `KSTACK_DATA_DIR` (prefix + uppercased field name).
#
# Default values are used when neither an env var nor a .env entry exists.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """kstack application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_prefix="KSTACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Storage ===
    # Root of the content store; shard directories are created beneath it.
    data_dir: str = "./data"
    # One category ID per line, optionally followed by a space and a label.
    categories_path: str = "resources/categories.txt"

    # === Scraping ===
    max_articles_per_author: int = 50
    fetch_max_retries: int = 2
    fetch_timeout: float = 60.0
    connect_retry_delay: float = 7.0
    rate_limit_retry_delay: float = 14.0
    # Pause between paginated API calls and between article fetches.
    courtesy_delay: float = 0.75

    # === Search ===
    search_top_k: int = 10

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 6237
    app_env: str = "development"
    log_level: str = "INFO"
