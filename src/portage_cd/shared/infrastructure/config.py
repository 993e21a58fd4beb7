"""
Application configuration using Pydantic Settings.

Loads runtime settings (logging, HTTP) from environment variables and .env file.
Pipeline configuration lives in portage_cd.pipeline.domain.models.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="PORTAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="portage", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")

    # Logging / Privacy
    log_redaction_enabled: bool = Field(default=True, description="Redact tokens and secrets in logs")

    # Webhooks
    webhook_timeout: float = Field(default=30.0, description="Timeout in seconds for each webhook request")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env.lower() == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env.lower() == "production"


# Global settings instance
settings = Settings()
