"""
Application configuration using 12-factor environment variables.
"""
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Chathub Admin")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=4002)

    # Database
    database_url: str = Field(default="sqlite:///./data/chathub.db")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")  # json or text

    # Sessions
    session_secret: str = Field(default="change-me-session-secret")
    session_max_age: int = Field(default=14 * 24 * 3600, description="Session cookie lifetime in seconds")

    # Seed admin account, also the default owner of auto-created instances
    admin_email: str = Field(default="admin@chathub.local")
    admin_password: str = Field(default="admin123")
    admin_name: str = Field(default="Administrador")

    # Evolution API (provider) used by the instance management endpoints
    evolution_api_url: Optional[str] = Field(default=None)
    evolution_api_key: Optional[str] = Field(default=None)
    provider_timeout: float = Field(default=15.0)

    # Optional HMAC-SHA256 validation of inbound webhooks
    webhook_secret: Optional[str] = Field(default=None, description="HMAC-SHA256 secret for webhook validation")

    # Media storage
    media_root: str = Field(default="./public/uploads")
    media_url_prefix: str = Field(default="/uploads")
    media_download_timeout: float = Field(default=30.0)
    media_retention_days: int = Field(default=30)

    # Realtime
    realtime_group: str = Field(default="admin")

    @property
    def is_webhook_secret_configured(self) -> bool:
        """Check if webhook secret is properly configured."""
        return bool(self.webhook_secret and len(self.webhook_secret) > 0)

    @property
    def is_provider_configured(self) -> bool:
        return bool(self.evolution_api_url and self.evolution_api_key)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
