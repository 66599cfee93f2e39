"""Unit tests for assettrack/config.py"""

from assettrack.config import Settings


def test_sync_database_url_comes_from_environment(monkeypatch):
    monkeypatch.setenv("DATABASE_SYNC_URL", "postgresql://assets@db/assettrack")
    assert Settings().DATABASE_SYNC_URL == "postgresql://assets@db/assettrack"


def test_cors_origins_are_split(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test")
    assert Settings().cors_origins_list == ["http://a.test", "http://b.test"]
