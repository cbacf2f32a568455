"""Configuration settings for the MCP server."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database connection
    database_url: str = "postgresql://localhost:5432/noise"
    db_pool_min_size: int = 2
    db_pool_max_size: int = 10
    db_pool_queue_limit: int = 0  # waiting acquirers allowed, 0 = unbounded
    db_query_timeout: float = 30.0  # seconds

    # Server settings
    server_name: str = "noise-mcp"
    server_version: str = "0.1.0"
    server_host: str = "0.0.0.0"
    server_port: int = 8000

    # Timezone used for "today", "this_week" and other calendar boundaries
    range_timezone: str = "UTC"

    # Rollup table selection thresholds
    rollup_minute_span_hours: float = 24.0
    rollup_hour_span_hours: float = 168.0

    recent_readings_limit: int = 1000


settings = Settings()
