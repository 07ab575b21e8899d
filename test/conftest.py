"""Pytest configuration and fixtures."""

import pytest

from near_workspaces.settings import get_settings


@pytest.fixture(autouse=True)
def clean_network_env(monkeypatch):
    """Every test starts without NEAR_WORKSPACES_NETWORK."""
    monkeypatch.delenv("NEAR_WORKSPACES_NETWORK", raising=False)


@pytest.fixture
def settings(monkeypatch, tmp_path):
    """Settings with temporary sandbox homes created under tmp_path."""
    settings = get_settings()
    monkeypatch.setattr(settings, "NEAR_WORKSPACES_TMP_DIR", str(tmp_path / "homes"))
    (tmp_path / "homes").mkdir()
    return settings
