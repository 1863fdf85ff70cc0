"""
Unit Tests - Settings, Logging and Engine Options
"""
import pytest
from pydantic import ValidationError

from marketplace_dashboard.config.logging import redact_secrets
from marketplace_dashboard.config.settings import (
    DashboardSettings,
    DatabaseSettings,
    RedisSettings,
    Settings,
)
from marketplace_dashboard.database.connection import (
    check_database_health,
    engine_options,
    get_db,
)


class TestSettings:

    def test_dashboard_defaults(self):
        settings = DashboardSettings()

        assert settings.range_options == [7, 30, 90]
        assert settings.default_range == 30
        assert settings.cache_ttl_seconds == 300
        assert settings.conversion_per_page == 10
        assert settings.currency == "BYN"
        assert (settings.pending_stale_days, settings.processing_stale_days, settings.unpaid_stale_days) == (2, 5, 3)

    def test_dashboard_env_override(self, monkeypatch):
        monkeypatch.setenv("DASHBOARD_CACHE_TTL_SECONDS", "60")
        monkeypatch.setenv("DASHBOARD_CURRENCY", "EUR")

        settings = DashboardSettings()

        assert settings.cache_ttl_seconds == 60
        assert settings.currency == "EUR"

    def test_database_url_from_parts(self, monkeypatch):
        monkeypatch.setenv("POSTGRES_HOST", "db.internal")
        monkeypatch.setenv("POSTGRES_DB", "shop")

        url = DatabaseSettings().async_url

        assert url.startswith("postgresql+asyncpg://")
        assert url.endswith("@db.internal:5432/shop")

    def test_database_url_override(self):
        assert DatabaseSettings(url="sqlite+aiosqlite:///dash.db").async_url == "sqlite+aiosqlite:///dash.db"

    def test_redis_url(self):
        assert RedisSettings(host="cache", db=2).get_url() == "redis://cache:6379/2"
        assert RedisSettings(password="s3cret").get_url() == "redis://:s3cret@localhost:6379/0"

    def test_app_env_validated(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "moon")

        with pytest.raises(ValidationError):
            Settings()

    def test_app_env_normalized(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "Production")

        assert Settings().is_production


class TestRedactSecrets:

    def test_masks_credentials(self):
        event = redact_secrets(None, "info", {"event": "x", "token": "abc", "authorization": "Bearer abc"})

        assert event == {"event": "x", "token": "***", "authorization": "***"}

    def test_leaves_other_keys(self):
        event = {"event": "Building dashboard", "brand_id": "brand-1", "range": 30}

        assert redact_secrets(None, "info", dict(event)) == event


class TestEngineOptions:

    def test_asyncpg_is_read_only_with_timeout(self):
        options = engine_options(DatabaseSettings(statement_timeout_ms=2500))
        server_settings = options["connect_args"]["server_settings"]

        assert server_settings["default_transaction_read_only"] == "on"
        assert server_settings["statement_timeout"] == "2500"
        assert options["pool_size"] == 10

    def test_sqlite_uses_defaults(self):
        assert engine_options(DatabaseSettings(url="sqlite+aiosqlite:///:memory:")) == {}


class TestUninitializedDatabase:

    async def test_get_db_raises(self):
        with pytest.raises(RuntimeError):
            async with get_db():
                pass

    async def test_health_reports_unhealthy(self):
        health = await check_database_health()

        assert health["status"] == "unhealthy"
