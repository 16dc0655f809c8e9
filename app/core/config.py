"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or .env file."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = "Semester Planner"
    debug: bool = False
    log_dir: str = "~/.logs/planner"

    # Server
    host: str = "0.0.0.0"  # Bind to all interfaces for external access
    port: int = 8000
    allowed_origins: str = "*"  # Comma-separated origins, or "*" for all

    # Database
    database_url: str = "sqlite:///./semester_planner.db"

    # Scheduling rules shared by every create/reschedule path
    min_schedule_offset_minutes: int = 4

    # Series resolution
    series_scan_limit: int = 5000  # Max rows read per collection by scanning cascade levels
    enable_heuristic_matching: bool = True

    # Run the legacy series-id backfill once when the app starts
    backfill_on_startup: bool = False


settings = Settings()
