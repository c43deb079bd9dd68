"""Tests for configuration loading and logging setup."""

import json

from loguru import logger

from planmatch.config import (
    get_cdn_url,
    get_database_url,
    get_recent_limit,
    get_similar_limit,
    load_config,
)
from planmatch.logging_config import setup_logging


def test_missing_config_file_gives_defaults(tmp_path):
    config = load_config(str(tmp_path / "absent.yaml"))

    assert config == {}
    assert get_similar_limit(config) == 10
    assert get_recent_limit(config) == 300


def test_config_from_env_path(tmp_path, monkeypatch):
    path = tmp_path / "planmatch.yaml"
    path.write_text("search:\n  default_limit: 25\n", encoding="utf-8")
    monkeypatch.setenv("PLANMATCH_CONFIG", str(path))

    assert get_similar_limit(load_config()) == 25


def test_database_url_precedence(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    assert get_database_url({}) == "sqlite:///planmatch.db"

    monkeypatch.setenv("DATABASE_URL", "postgresql://db/planmatch")
    assert get_database_url({}) == "postgresql://db/planmatch"
    assert get_database_url({"database": {"url": "sqlite:///x.db"}}) == "sqlite:///x.db"


def test_cdn_url_from_env(monkeypatch):
    monkeypatch.setenv("CDN_URL", "https://cdn.example.com")

    assert get_cdn_url({}) == "https://cdn.example.com"


def test_json_logging(capsys):
    setup_logging(level="INFO", json_format=True)

    logger.bind(project_id="p1").info("ingested")

    line = capsys.readouterr().err.strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["message"] == "ingested"
    assert payload["level"] == "INFO"
    assert payload["project_id"] == "p1"


def test_log_file(tmp_path):
    log_file = tmp_path / "logs" / "planmatch.log"
    setup_logging(level="DEBUG", log_file=log_file)

    logger.debug("written to file")

    assert "written to file" in log_file.read_text(encoding="utf-8")
