"""
Application configuration using pydantic-settings.
Loads environment variables from .env file.

Nested config groups (QuotaConfig, ConversionConfig, PersistenceConfig) are
env-overridable via the double-underscore delimiter, e.g.:
    QUOTA__FREE_LIMIT=5
    QUOTA__COUNT_PREMIUM_CONVERSIONS=false
    CONVERSION__SIMULATED_DELAY_SECONDS=0
"""

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class QuotaConfig(BaseModel):
    """Free-tier quota rules."""

    free_limit: int = Field(default=3, ge=0)
    # Premium users bypass the quota check; this decides whether their
    # conversions still bump conversion_count.
    count_premium_conversions: bool = True


class ConversionConfig(BaseModel):
    """Conversion execution and upload limits."""

    simulated_delay_seconds: float = Field(default=2.0, ge=0)
    max_upload_mb: int = Field(default=25, gt=0)
    # Minutes of inactivity before a session's workflows are discarded
    session_timeout_minutes: int = Field(default=30, gt=0)


class PersistenceConfig(BaseModel):
    """Supabase table and RPC names."""

    profiles_table: str = "profiles"
    conversions_table: str = "conversion_history"
    subscriptions_table: str = "subscriptions"
    increment_rpc: str = "increment_conversion_count"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # Supabase
    supabase_url: str = ""
    supabase_secret_key: str = ""

    # Optional JSON file replacing the default plan / bank catalog
    catalog_path: str = ""

    # App Settings
    debug: bool = False
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Nested config groups (env-overridable via SECTION__KEY format)
    quota: QuotaConfig = Field(default_factory=QuotaConfig)
    conversion: ConversionConfig = Field(default_factory=ConversionConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_secret_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
