"""
Configuration loading for PlanMatch.
Reads a YAML file into a plain dict and resolves settings with environment fallbacks.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from loguru import logger

DEFAULT_CONFIG_PATH = "config.yaml"
DEFAULT_DATABASE_URL = "sqlite:///planmatch.db"
DEFAULT_CDN_URL = "https://dev-resources.archisketch.com"
DEFAULT_SIMILAR_LIMIT = 10
DEFAULT_RECENT_LIMIT = 300


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    config_file = Path(config_path or os.getenv('PLANMATCH_CONFIG', DEFAULT_CONFIG_PATH))
    if not config_file.exists():
        logger.debug(f"Config file {config_file} not found, using defaults")
        return {}

    with open(config_file, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


def get_database_url(config: Dict[str, Any]) -> str:
    """Database URL from config, then DATABASE_URL, then a local SQLite file."""
    return (
        config.get('database', {}).get('url') or
        os.getenv('DATABASE_URL') or
        DEFAULT_DATABASE_URL
    )


def get_cdn_url(config: Dict[str, Any]) -> str:
    return (
        config.get('floorplans', {}).get('cdn_url') or
        os.getenv('CDN_URL') or
        DEFAULT_CDN_URL
    )


def get_similar_limit(config: Dict[str, Any]) -> int:
    return int(config.get('search', {}).get('default_limit', DEFAULT_SIMILAR_LIMIT))


def get_recent_limit(config: Dict[str, Any]) -> int:
    return int(config.get('ingestion', {}).get('recent_limit', DEFAULT_RECENT_LIMIT))
