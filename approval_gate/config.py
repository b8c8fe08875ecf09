"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class JobTypeSettings(BaseModel):
    """Job type declared through configuration, e.g. in the JOB_TYPES JSON."""

    name: str
    queue_name: str
    default_queue_name: str | None = None
    max_active_jobs: int = -1
    auto_delete_approval_key: bool = False
    compressed: bool = False


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    approve_key_prefix: str = "approve"

    # Job types known to the gate
    job_types: list[JobTypeSettings] = []

    # Admin API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_secret_key: str = "your-secret-key-change-in-production"
    api_algorithm: str = "HS256"
    api_access_token_expire_minutes: int = 30
    admin_api_key: str = "change-me"
    default_page_size: int = 20

    # Reconciler Configuration
    reconciler_interval_seconds: int = 60

    # Observability
    otel_exporter_otlp_endpoint: str = "http://localhost:4317"
    otel_service_name: str = "approval-gate"
    log_level: str = "INFO"
    log_format: str = "json"  # json or console


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
