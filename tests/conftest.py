"""Shared test fixtures."""

import pytest


@pytest.fixture(autouse=True)
def temp_data_dir(monkeypatch, tmp_path):
    """Override data directories to use a temp dir for each test."""
    import signalgraph.config as config

    data_dir = tmp_path / "data"
    data_dir.mkdir()

    monkeypatch.setattr(config, "DATA_DIR", data_dir)
    monkeypatch.setattr(config, "DB_PATH", data_dir / "signalgraph.db")
    # Keep a developer's .env out of the tests
    monkeypatch.setattr(config, "_env_initialized", True)
    monkeypatch.setattr(config, "INSIGHT_TYPE", "push")
    monkeypatch.setattr(config, "POLL_FALLBACK_SECONDS", 30.0)

    return data_dir


@pytest.fixture
def store(temp_data_dir):
    """A fresh Record Store backed by the temp database."""
    from signalgraph.store import RecordStore
    return RecordStore()
