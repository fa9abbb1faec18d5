"""Application configuration using pydantic-settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database
    database_url: str = "sqlite:///./data/yatra.db"

    # Allocation engine
    # "hotel" serializes writers per hotel and registration, "global" uses one lock
    lock_scope: Literal["hotel", "global"] = "hotel"

    # Logging
    log_level: str = "INFO"
    redact_logs: bool = True

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000


settings = Settings()
