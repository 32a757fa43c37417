"""Configuration system using pydantic-settings with environment variable loading."""

from enum import Enum

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from metalproxy.exceptions import ConfigError


class PlanTier(str, Enum):
    """Upstream subscription level. Determines the allowed polling frequency."""

    FREE = "free"
    BASIC = "basic"
    ESSENTIAL = "essential"
    PROFESSIONAL = "professional"
    BUSINESS = "business"


# Bulk refresh interval per plan, in seconds. Sized so a month of polling
# stays below the plan's request allowance with room for on-demand fetches.
PLAN_REFRESH_INTERVALS: dict[PlanTier, int] = {
    PlanTier.FREE: 8 * 60 * 60,  # 100 req/month
    PlanTier.BASIC: 5 * 60,  # 10k req/month
    PlanTier.ESSENTIAL: 45 * 60,  # 1k req/month
    PlanTier.PROFESSIONAL: 60,  # 50k req/month
    PlanTier.BUSINESS: 60,  # 100k req/month
}

_SECONDS_PER_MONTH = 30 * 24 * 60 * 60


class MetalpriceSettings(BaseSettings):
    """Upstream price API credentials and plan settings."""

    model_config = SettingsConfigDict(
        env_prefix="METALPRICE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_key: SecretStr = SecretStr("")
    api_base: str = "https://api.metalpriceapi.com/v1"
    plan: PlanTier = PlanTier.ESSENTIAL
    monthly_quota: int = 1000  # informational only
    refresh_minutes: float | None = None  # manual override of the plan interval
    timeout_seconds: float = 15.0

    @field_validator("plan", mode="before")
    @classmethod
    def _normalize_plan(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("refresh_minutes", mode="before")
    @classmethod
    def _blank_override_is_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def require_api_key(self) -> str:
        """Return the API key, raising ConfigError when it is not configured."""
        key = self.api_key.get_secret_value().strip()
        if not key:
            raise ConfigError(
                "Missing METALPRICE_API_KEY. Add it to the environment or .env "
                "(never commit secrets)."
            )
        return key

    @property
    def refresh_interval_seconds(self) -> float:
        """Bulk refresh interval. Manual override wins over the plan default."""
        if self.refresh_minutes is not None and self.refresh_minutes > 0:
            return self.refresh_minutes * 60
        return float(PLAN_REFRESH_INTERVALS[self.plan])

    @property
    def estimated_monthly_requests(self) -> int:
        """Bulk refresh calls per 30-day month at the configured interval."""
        return int(_SECONDS_PER_MONTH // self.refresh_interval_seconds)


class CacheSettings(BaseSettings):
    """In-memory cache and time series parameters."""

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_currency: str = "USD"
    max_series_points: int = 500
    series_min_spacing_seconds: float = 60.0
    min_refresh_seconds: float = 60.0  # on-demand refresh guard window
    seed_lookback_days: int = 30
    seed_on_startup: bool = True


class ServerSettings(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SERVER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 3000


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = "INFO"
    log_format: str = "console"  # "console" or "json"
    metalprice: MetalpriceSettings = Field(default_factory=MetalpriceSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
