"""Application configuration via environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or .env file."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = "Rollcall"
    debug: bool = False
    organizer_api_key: str = "change-me-in-production"  # X-Organizer-Key for display routes
    log_dir: Path = Path.home() / ".logs" / "rollcall"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: str = "*"  # Comma-separated origins, or "*" for all

    # Database
    database_url: str = "sqlite:///./rollcall.db"

    # Check-in pipeline
    session_ttl_seconds: int = 120
    token_fallback_validity_seconds: int = 15  # Used when no explicit token expiry is stored
    rotation_grace_seconds: int = 0
    host_lease_seconds: int = 20

    # Moderation
    attendance_snapshot_limit: int = 2000
    search_min_length: int = 2


settings = Settings()
