"""Application settings and configuration."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LINKEDIN_URL = "https://www.linkedin.com/jobs-guest/jobs/api/seeMoreJobPostings/search"
ONE_WEEK_IN_SECONDS = 7 * 24 * 60 * 60
DEFAULT_RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


class Settings(BaseSettings):
    """Application settings loaded from environment and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Storage
    data_dir: Path = Field(default=Path("data"), description="Directory holding feeds.db")

    # Scraping
    linkedin_url: str = Field(default=LINKEDIN_URL)
    page_size: int = Field(default=10, description="Results per page served by the source")
    max_attempts: int = Field(default=5, description="Fetch attempts per page, first try included")
    backoff_base: float = Field(default=1.0, description="Seconds; doubled on every further retry")
    retryable_status_codes: frozenset[int] = Field(default=DEFAULT_RETRYABLE_STATUS_CODES)
    request_timeout: float = Field(default=10.0)
    default_time_window: int = Field(
        default=ONE_WEEK_IN_SECONDS, description="Seconds looked back by a query that never ran"
    )

    # Lifecycle
    query_expiry_days: int = Field(default=7, description="Unread queries older than this are removed")
    offer_retention_days: int = Field(default=7)
    retry_delay: float = Field(default=300.0, description="Seconds before a failed cycle is retried")
    first_run_timeout: float = Field(default=10.0)
    shutdown_grace: float = Field(default=30.0)
    sweep_hour: int = Field(default=3, description="UTC hour of the daily retention sweep")

    # Logging
    log_level: str = Field(default="INFO")
    sentry_dsn: str = Field(default="", description="Sentry DSN, empty string disables Sentry")
    sentry_environment: str = Field(default="development")
    log_file: Path | None = Field(default=None, description="JSON lines log file; unset disables it")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)

    @property
    def db_path(self) -> Path:
        return self.data_dir / "feeds.db"


settings = Settings()
