from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database - can use either DATABASE_URL or separate params
    database_url: str | None = None

    # Separate DB params (for passwords with special characters)
    db_host: str | None = None
    db_port: int = 5432
    db_user: str = "postgres"
    db_password: str | None = None
    db_name: str = "postgres"

    # Auth - dev mode bypass
    dev_user_id: str | None = None  # Set this to bypass JWT auth in local dev

    # Auth - issued access tokens
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 30 * 24 * 60  # 30 days

    # Comma-separated user IDs allowed to reset other users' usage
    admin_user_ids: str = ""

    # AI analysis
    anthropic_api_key: str | None = None
    claude_model: str = "claude-3-5-sonnet-20241022"
    max_transcript_length: int = 100_000
    max_video_duration_minutes: int = 15

    # Free tier usage
    free_analysis_limit: int = 2
    usage_window: str = "midnight"  # "midnight" or "rolling"
    usage_window_hours: int = 24  # Only used by the rolling window
    usage_timezone: str = "UTC"
    usage_store_key: str = "usage_data_v1"

    # Persistence retry budget for usage writes
    store_retry_attempts: int = 3
    store_retry_base_delay: float = 0.5
    store_retry_max_delay: float = 8.0

    # Background reconciliation of stale server-side counters (0 disables)
    usage_reset_interval_seconds: int = 3600

    # CORS - production frontend URL
    frontend_url: str | None = None

    @property
    def is_dev_mode(self) -> bool:
        """Check if running in dev mode with auth bypass."""
        return self.dev_user_id is not None

    @property
    def admin_ids(self) -> set[str]:
        """Parsed set of admin user IDs."""
        return {part.strip() for part in self.admin_user_ids.split(",") if part.strip()}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
