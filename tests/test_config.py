"""
Unit tests for the application configuration (Settings).

Tests cover:
- Default values
- DATABASE_URL for SQLite and PostgreSQL
- PostgreSQL credential validation
- Fund parameter validation
"""

import os

import pytest

from poolfund.core.config import Settings, settings


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, USE_SQLITE=True, **overrides)  # type: ignore[call-arg]


class TestSettingsDefaults:
    def test_project_name(self):
        assert settings.PROJECT_NAME == "Pooled Yield Fund API"

    def test_api_version_prefix(self):
        assert settings.API_V1_STR == "/api/v1"

    def test_use_sqlite_in_tests(self):
        assert settings.USE_SQLITE is True

    def test_circuit_breaker_settings_have_defaults(self):
        assert settings.CB_FAILURE_THRESHOLD > 0
        assert settings.CB_RECOVERY_TIMEOUT > 0

    def test_fund_defaults(self):
        s = _settings()
        assert s.ASSET_DECIMALS == 6
        assert s.MIN_INVESTMENT == 1_000_000
        assert s.BUY_FEE_BPS == 0
        assert s.SELL_FEE_BPS == 0
        assert s.YIELD_ROUTING_ENABLED is True

    def test_fund_addresses_lowercased(self):
        s = _settings(FUND_OWNER="0xABCDEF", FEE_COLLECTOR=" 0xFEE ", FUND_ADDRESS="0xF00D")
        assert (s.FUND_OWNER, s.FEE_COLLECTOR, s.FUND_ADDRESS) == ("0xabcdef", "0xfee", "0xf00d")


class TestDatabaseURL:
    def test_sqlite_url(self):
        assert _settings().DATABASE_URL == "sqlite+aiosqlite://"

    def test_postgres_url(self):
        s = Settings(
            USE_SQLITE=False,
            POSTGRES_USER="u",
            POSTGRES_PASSWORD="p",
            POSTGRES_SERVER="localhost",
            POSTGRES_DB="db",
            POSTGRES_PORT=5432,
        )
        url = s.DATABASE_URL
        assert url.startswith("postgresql+asyncpg://")
        assert "u:p@localhost:5432/db" in url

    def test_pg_missing_credentials_raises(self):
        saved = {}
        for key in (
            "USE_SQLITE",
            "POSTGRES_USER",
            "POSTGRES_PASSWORD",
            "POSTGRES_SERVER",
            "POSTGRES_DB",
        ):
            saved[key] = os.environ.pop(key, None)
        try:
            with pytest.raises(Exception, match="POSTGRES_USER"):
                Settings(USE_SQLITE=False, _env_file=None)  # type: ignore[call-arg]
        finally:
            for key, val in saved.items():
                if val is not None:
                    os.environ[key] = val


class TestFundParameters:
    @pytest.mark.parametrize("field", ["BUY_FEE_BPS", "SELL_FEE_BPS"])
    def test_fee_above_cap_rejected(self, field):
        with pytest.raises(Exception, match=field):
            _settings(**{field: 1_001})

    def test_fee_at_cap_accepted(self):
        assert _settings(BUY_FEE_BPS=1_000).BUY_FEE_BPS == 1_000

    def test_negative_minimum_rejected(self):
        with pytest.raises(Exception, match="MIN_INVESTMENT"):
            _settings(MIN_INVESTMENT=-1)

    def test_decimals_out_of_range_rejected(self):
        with pytest.raises(Exception, match="ASSET_DECIMALS"):
            _settings(ASSET_DECIMALS=40)

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("SELL_FEE_BPS", "25")
        monkeypatch.setenv("YIELD_ROUTING_ENABLED", "false")

        s = _settings()

        assert s.SELL_FEE_BPS == 25
        assert s.YIELD_ROUTING_ENABLED is False
