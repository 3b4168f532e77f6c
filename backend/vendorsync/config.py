"""Application configuration using Pydantic settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_url: str = "postgresql+asyncpg://localhost:5432/vendorsync"

    # Vendor API
    vendor_base_url: str = "https://sellingpartnerapi-na.amazon.com"
    vendor_client_id: str | None = None
    vendor_client_secret: str | None = None
    vendor_timeout_seconds: float = 30.0
    page_limit: int = 100  # Vendor maximum per list request

    # Range planning
    max_segment_span_days: int = 7
    default_lookback_days: int = 365
    shipments_lookback_days: int = 60

    # Steady-state pacing (seconds)
    page_delay_seconds: float = 0.2
    final_page_delay_seconds: float = 0.5
    segment_delay_seconds: float = 0.5
    stream_delay_seconds: float = 0.3

    # In-line throttle retry
    throttle_retry_max: int = 5
    throttle_initial_delay_seconds: float = 1.0

    # Deferred segment queue
    retry_queue_delay_minutes: int = 10
    retry_queue_max_attempts: int = 3

    # Report jobs
    report_poll_interval_seconds: float = 15.0
    report_max_wait_seconds: float = 300.0
    report_queue_delay_minutes: int = 10
    report_queue_max_attempts: int = 5
    report_lookback_days: int = 90
    report_queue_batch_size: int = 50

    # Scheduler (cron expressions, server local time)
    scheduler_enabled: bool = True
    sync_cron: str = "0 1,7 * * *"
    retry_queue_cron: str = "*/30 * * * *"
    report_sync_cron: str = "0 3 * * *"
    report_queue_cron: str = "*/15 * * * *"

    # API settings
    api_v1_prefix: str = "/api/v1"
    cors_origins: list[str] = ["*"]  # Restrict in production
    rate_limit_per_minute: int = 10

    # Environment
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
