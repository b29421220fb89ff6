"""
Application configuration module.

Loads settings from environment variables (or a ``.env`` file) using
pydantic-settings. Fund parameters set here are only the *initial* values;
the owner can change fees, the minimum investment and the fee collector at
runtime through the admin endpoints.
"""

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from poolfund.engine.ports import normalize_address
from poolfund.engine.pricing import MAX_FEE_BPS


class Settings(BaseSettings):
    """Central configuration for the Pooled Yield Fund API."""

    PROJECT_NAME: str = "Pooled Yield Fund API"
    API_V1_STR: str = "/api/v1"

    # ── SQLite mode (no external DB required) ──
    USE_SQLITE: bool = False

    # ── PostgreSQL connection parameters ──
    # Empty defaults so USE_SQLITE=true works without dummy values; the
    # validator below insists on all four when PostgreSQL is in use.
    POSTGRES_USER: str = ""
    POSTGRES_PASSWORD: str = ""
    POSTGRES_SERVER: str = ""
    POSTGRES_DB: str = ""
    POSTGRES_PORT: int = 5432

    # ── Connection pool tuning ──
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30  # seconds
    DB_POOL_RECYCLE: int = 1800  # seconds

    # ── Journal circuit breaker ──
    CB_FAILURE_THRESHOLD: int = 5
    CB_RECOVERY_TIMEOUT: float = 30.0

    # ── Logging ──
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FILE_MAX_BYTES: int = 10 * 1024 * 1024
    LOG_FILE_BACKUP_COUNT: int = 5

    # ── CORS ──
    CORS_ORIGINS: str = "*"

    # ── Fund deployment ──
    FUND_ADDRESS: str = "0x000000000000000000000000000000000000f00d"
    FUND_OWNER: str = "0x000000000000000000000000000000000000a110"
    FEE_COLLECTOR: str = "0x0000000000000000000000000000000000000fee"
    ASSET_SYMBOL: str = "USDC"
    ASSET_DECIMALS: int = 6
    MIN_INVESTMENT: int = 1_000_000
    BUY_FEE_BPS: int = 0
    SELL_FEE_BPS: int = 0
    YIELD_ROUTING_ENABLED: bool = True

    # Exposes mint / approve / accrue helpers backed by the in-memory
    # collaborators. Never enable against real assets.
    SANDBOX_MODE: bool = True

    @field_validator("FUND_ADDRESS", "FUND_OWNER", "FEE_COLLECTOR")
    @classmethod
    def _normalize_addresses(cls, v: str) -> str:
        return normalize_address(v)

    @model_validator(mode="after")
    def _require_pg_credentials_unless_sqlite(self) -> "Settings":
        """Fail fast if PostgreSQL credentials are missing in production mode."""
        if not self.USE_SQLITE:
            missing = [
                name
                for name in (
                    "POSTGRES_USER",
                    "POSTGRES_PASSWORD",
                    "POSTGRES_SERVER",
                    "POSTGRES_DB",
                )
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(
                    f"PostgreSQL mode requires these environment variables: "
                    f"{', '.join(missing)}. Set them in .env or the environment, "
                    f"or run with USE_SQLITE=true for an in-memory journal."
                )
        return self

    @model_validator(mode="after")
    def _check_fund_parameters(self) -> "Settings":
        """Reject fee or precision settings the fund engine would refuse anyway."""
        for name in ("BUY_FEE_BPS", "SELL_FEE_BPS"):
            value = getattr(self, name)
            if not 0 <= value <= MAX_FEE_BPS:
                raise ValueError(
                    f"{name} must be between 0 and {MAX_FEE_BPS} basis points, got {value}"
                )
        if not 0 <= self.ASSET_DECIMALS <= 36:
            raise ValueError(f"ASSET_DECIMALS out of range: {self.ASSET_DECIMALS}")
        if self.MIN_INVESTMENT < 0:
            raise ValueError("MIN_INVESTMENT must not be negative")
        return self

    @property
    def DATABASE_URL(self) -> str:
        """Async DSN: in-memory SQLite when ``USE_SQLITE``, otherwise asyncpg."""
        if self.USE_SQLITE:
            return "sqlite+aiosqlite://"
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
