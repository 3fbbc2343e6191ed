"""Client configuration using pydantic-settings."""
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Backend - every route is mounted under /api
    api_url: str = Field(
        default="http://localhost:8080/api",
        validation_alias="WOULDYOU_API_URL",
    )
    request_timeout: float = Field(default=30.0, validation_alias="WOULDYOU_API_TIMEOUT")
    # Startup probe must not block the app on a hung network
    validate_timeout: float = Field(default=5.0, validation_alias="WOULDYOU_VALIDATE_TIMEOUT")
    request_source: str = Field(
        default="wouldyou-client",
        validation_alias="WOULDYOU_REQUEST_SOURCE",
    )

    # Local persistence
    keyring_service: str = Field(default="wouldyou", validation_alias="WOULDYOU_KEYRING_SERVICE")
    state_dir: Path = Field(
        default=Path("~/.wouldyou"),
        validation_alias="WOULDYOU_STATE_DIR",
    )

    @field_validator("request_timeout", "validate_timeout")
    @classmethod
    def validate_positive_timeout(cls, value: float) -> float:
        """Reject zero or negative timeouts."""
        if value <= 0:
            raise ValueError("timeout must be positive")
        return value

    @property
    def local_state_path(self) -> Path:
        """Get the path of the plain local key-value file."""
        return self.state_dir.expanduser() / "local_state.json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
