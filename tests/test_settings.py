"""Tests for seaquel.settings.

Covers:
- SeaquelSettings defaults
- SEAQUEL_* environment overrides
- connect() falling back to the settings URL
"""

from unittest.mock import patch

from seaquel.database import connect
from seaquel.settings import SeaquelSettings, get_settings


class TestSeaquelSettingsDefaults:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("SEAQUEL_DATABASE_URL", raising=False)
        s = SeaquelSettings(_env_file=None)
        assert s.database_url == "postgres://localhost:5432/postgres"
        assert s.pool_min_size == 1
        assert s.pool_max_size == 10
        assert s.command_timeout == 60.0
        assert s.log_level == "INFO"
        assert s.log_json is None


class TestSeaquelSettingsEnvOverride:
    def test_database_url_from_env(self, monkeypatch):
        monkeypatch.setenv("SEAQUEL_DATABASE_URL", "postgres://env@dbhost/envdb")
        assert SeaquelSettings(_env_file=None).database_url == "postgres://env@dbhost/envdb"

    def test_pool_sizes_from_env(self, monkeypatch):
        monkeypatch.setenv("SEAQUEL_POOL_MAX_SIZE", "25")
        monkeypatch.setenv("SEAQUEL_LOG_JSON", "true")
        s = SeaquelSettings(_env_file=None)
        assert s.pool_max_size == 25
        assert s.log_json is True

    def test_unprefixed_env_ignored(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgres://other/db")
        monkeypatch.delenv("SEAQUEL_DATABASE_URL", raising=False)
        assert SeaquelSettings(_env_file=None).database_url == "postgres://localhost:5432/postgres"

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()


class TestConnectUsesSettings:
    def test_connect_without_arguments(self):
        settings = SeaquelSettings(_env_file=None, database_url="postgres://svc@pg:5433/orders")
        with patch("seaquel.adapters.types.get_settings", return_value=settings):
            db = connect()
        assert db.config.host == "pg"
        assert db.config.port == 5433
        assert db.config.database == "orders"
