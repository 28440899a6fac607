"""Configuration module — exports Settings, load_config, and category parsing."""

from kstack.config.loader import load_config, parse_category_ids, read_category_ids
from kstack.config.settings import Settings

__all__ = ["Settings", "load_config", "parse_category_ids", "read_category_ids"]
