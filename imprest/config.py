from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Imprest Service"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "postgresql+asyncpg://imprest:imprest@db:5432/imprest"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]

    # Requesters must account for disbursed funds within this window.
    accounting_window_hours: int = 72
    overdue_check_interval_seconds: int = 86400
    notification_sender: str = "Finance Team"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
