"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file and override existing env vars
load_dotenv(override=True)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Vercel. Without VERCEL_DEPLOY_REAL deployments are simulated.
    vercel_token: str = Field(default="", repr=False)
    vercel_team_id: str | None = None
    vercel_api_url: str = "https://api.vercel.com"
    vercel_git_ref: str = "main"
    vercel_deploy_real: bool = False
    provider_timeout: float = Field(default=30.0, gt=0)

    # Monitoring and retries (seconds)
    deploy_max_retries: int = Field(default=3, ge=0)
    deploy_poll_interval: float = Field(default=5.0, gt=0)
    deploy_max_wait: float = Field(default=600.0, gt=0)
    deploy_retry_delay: float = Field(default=30.0, ge=0)

    # Maintenance jobs
    cleanup_failed_after_days: int = Field(default=7, ge=0)
    stale_deploying_after_minutes: int = Field(default=30, ge=0)

    # Logging; an empty log_directory disables the log file
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["console", "json"] = "console"
    log_directory: str = "logs"
    log_file_name: str = "deploy-orchestrator.log"

    @field_validator("vercel_token")
    @classmethod
    def strip_token(cls, value: str) -> str:
        return value.strip()

    @model_validator(mode="after")
    def check_polling(self) -> "Settings":
        if self.deploy_poll_interval > self.deploy_max_wait:
            raise ValueError("deploy_poll_interval must not exceed deploy_max_wait")
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
