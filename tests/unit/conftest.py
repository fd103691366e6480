"""
Unit test configuration for Stackdash.

Keeps tests away from the user's ~/.stackdash directory.
"""

import pytest


@pytest.fixture(autouse=True)
def isolated_config_path(tmp_path, monkeypatch):
    """Point the YAML settings file at a temp location for every test."""
    config_path = tmp_path / "stackdash-home" / "config.yaml"
    monkeypatch.setattr("stackdash.config.CONFIG_PATH", config_path)
    monkeypatch.setattr("stackdash.config.CONFIG_DIR", config_path.parent)
    yield config_path
