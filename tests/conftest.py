"""Shared fixtures: two file-backed SQLite stores per test, schema created on open."""

from __future__ import annotations

import pytest

from ferramentas.config import Settings


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        transactional_database_url=f"sqlite+aiosqlite:///{tmp_path / 'ecommerce.db'}",
        analytics_database_url=f"sqlite+aiosqlite:///{tmp_path / 'dw.db'}",
        store_timeout=5.0,
        create_schema=True,
        bcrypt_rounds=4,
    )


@pytest.fixture
def env(monkeypatch, settings: Settings) -> Settings:
    """Expose the same stores through environment variables (CLI / app factory)."""
    monkeypatch.setenv("TRANSACTIONAL_DATABASE_URL", settings.transactional_database_url)
    monkeypatch.setenv("ANALYTICS_DATABASE_URL", settings.analytics_database_url)
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("CREATE_SCHEMA", "true")
    return settings
