"""Core application configuration and settings.

Handles environment variables, backend connection details, cache and
aggregation settings.
"""
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings


# Load environment variables
ROOT = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=ROOT / ".env", override=False)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Hosted backend (PostgREST-style REST API)
    backend_url: str = Field(default="", alias="BACKEND_URL")
    backend_api_key: str = Field(default="", alias="BACKEND_API_KEY")
    backend_timeout_seconds: float = Field(default=10.0, alias="BACKEND_TIMEOUT_SECONDS")

    # Query limits mirror what the dashboards render
    metrics_query_limit: int = Field(default=30, ge=1, alias="METRICS_QUERY_LIMIT")
    analytics_query_limit: int = Field(default=100, ge=1, alias="ANALYTICS_QUERY_LIMIT")

    # Aggregation
    trend_window: int = Field(default=7, ge=0, alias="TREND_WINDOW")
    trend_label_format: str = Field(default="%Y-%m-%d", alias="TREND_LABEL_FORMAT")
    headline_metrics: list[str] = Field(
        default_factory=lambda: ["engagement", "comprehension", "participation", "progress"],
        alias="HEADLINE_METRICS"
    )
    charted_metrics: list[str] = Field(
        default_factory=lambda: ["engagement", "progress"],
        alias="CHARTED_METRICS"
    )

    # Redis Configuration
    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_password: Optional[str] = Field(default=None, alias="REDIS_PASSWORD")
    redis_db: int = Field(default=0, alias="REDIS_DB")
    cache_ttl_minutes: int = Field(default=5, ge=1, alias="CACHE_TTL_MINUTES")
    cache_key_prefix: str = Field(default="query:", alias="CACHE_KEY_PREFIX")

    # Application Settings
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # API Settings
    api_prefix: str = Field(default="/api/v1", alias="API_PREFIX")
    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173"
        ],
        alias="CORS_ORIGINS"
    )

    class Config:
        case_sensitive = False
        env_file = ".env"
        populate_by_name = True
        extra = "ignore"

    def validate_required_settings(self):
        """Validate that required settings are present."""
        if not self.backend_url:
            raise ValueError(
                "BACKEND_URL not set. Define BACKEND_URL in .env "
                "(e.g., https://<project>.supabase.co)."
            )
        if not self.backend_api_key:
            raise ValueError(
                "BACKEND_API_KEY not set. Define BACKEND_API_KEY in .env."
            )


# Global settings instance
settings = Settings()


# Validate settings on module import (only in non-test environments)
if settings.environment != "test":
    try:
        settings.validate_required_settings()
    except ValueError as e:
        print(f"Configuration Error: {e}")
        # Don't raise in development to allow partial setup
        if settings.environment == "production":
            raise
