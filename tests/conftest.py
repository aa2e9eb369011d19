"""Shared pytest fixtures for portfolio metrics tests."""

import pytest

from portfolio_metrics.core.config import set_config_path


@pytest.fixture(autouse=True)
def isolated_config(tmp_path):
    """Each test gets its own config.json; the real one is never touched."""
    path = tmp_path / "config.json"
    set_config_path(str(path))
    yield path
    set_config_path(None)
