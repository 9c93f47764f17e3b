"""Configuration management for observation insights."""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseSettings):
    """Database configuration settings."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_", env_file=".env", extra="ignore")

    url: Optional[str] = None
    pool_min_size: int = 1
    pool_max_size: int = 10

    @field_validator("url")
    @classmethod
    def validate_url(cls, v):
        """Validate database URL format."""
        if v is None:
            return v
        if not v.startswith(("postgresql://", "postgres://")):
            raise ValueError("DATABASE_URL must be a valid PostgreSQL connection string")
        if "[PASSWORD]" in v:
            raise ValueError("DATABASE_URL contains placeholder password - please set actual password")
        return v


class LLMConfig(BaseSettings):
    """Narrative generation API settings."""

    model_config = SettingsConfigDict(env_prefix="LLM_", env_file=".env", extra="ignore")

    api_key: Optional[str] = None
    base_url: str = "https://api.openai.com/v1/chat/completions"
    model: str = "gpt-4"
    max_tokens: int = 4000
    temperature: float = 0.7
    request_timeout: float = 60.0
    max_retries: int = 3
    retry_delay: float = 1.0


class AnalyticsConfig(BaseSettings):
    """Thresholds and windows used by the aggregation and insight rules."""

    model_config = SettingsConfigDict(env_prefix="ANALYTICS_", env_file=".env", extra="ignore")

    # Trend analysis
    halves_threshold: float = Field(0.3, gt=0)
    halves_min_points: int = Field(6, ge=2)
    recent_window: int = Field(7, ge=1)
    recent_change_threshold_pct: float = Field(2.0, ge=0)
    moving_average_window: int = Field(7, ge=1)
    staff_trend_window: int = Field(3, ge=1)
    staff_trend_threshold: float = Field(0.2, ge=0)

    # Insight rules
    outstanding_ratio_threshold: float = Field(0.3, ge=0, le=1)
    inadequate_ratio_threshold: float = Field(0.1, ge=0, le=1)
    comparison_min_gap: float = Field(0.0, ge=0)
    key_stage_gap_threshold: float = Field(0.5, ge=0)
    support_threshold: float = 2.5
    mentor_threshold: float = 3.5
    max_exemplar_teachers: int = Field(2, ge=1)
    theme_limit: int = Field(5, ge=1)

    # Date bucketing for trend series: day, week or month
    date_granularity: str = "day"

    @field_validator("date_granularity")
    @classmethod
    def validate_granularity(cls, v):
        """Only calendar buckets the aggregation engine knows about are allowed."""
        v = v.lower()
        if v not in ("day", "week", "month"):
            raise ValueError("date_granularity must be one of: day, week, month")
        return v


class AppConfig(BaseSettings):
    """Application configuration settings."""

    model_config = SettingsConfigDict(env_prefix="APP_", env_file=".env", extra="ignore")

    name: str = "observation-insights"
    version: str = "0.1.0"
    log_level: str = "INFO"
    debug: bool = False


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    app: AppConfig = Field(default_factory=AppConfig)

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from environment."""
        return cls()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings.load()
