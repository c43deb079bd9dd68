"""Shared fixtures for the PlanMatch test suite."""

import pytest
from loguru import logger

from planmatch.indexing.database import DatabaseManager


@pytest.fixture(autouse=True)
def _reset_logging():
    """Drop loguru sinks so no test logs into a stream captured by an earlier one."""
    logger.remove()
    yield
    logger.remove()


@pytest.fixture()
def database_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'planmatch.db'}"


@pytest.fixture()
def db_manager(database_url):
    manager = DatabaseManager(database_url)
    yield manager
    manager.close()
