"""Application configuration settings."""

from pydantic import field_validator
from pydantic_settings import BaseSettings


class ConfigurationError(Exception):
    """Raised when a component is built without the settings it needs."""
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Prometheus"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "postgresql+asyncpg://localhost:5432/prometheus"

    # Microsoft Graph
    graph_base_url: str = "https://graph.microsoft.com/v1.0"
    graph_timeout_seconds: float = 5.0
    webhook_public_url: str = ""  # e.g. https://hooks.example.com

    # Azure AD application (client credentials)
    azure_tenant_id: str = ""
    azure_client_id: str = ""
    azure_client_secret: str = ""
    azure_authority: str = "https://login.microsoftonline.com"

    # Renewal scheduler
    enable_scheduler: bool = False
    renewal_interval_minutes: int = 30
    renewal_lookahead_minutes: int = 45
    renewal_request_timeout_seconds: float = 50.0  # on-demand pass budget
    cron_secret: str = ""

    # Provisioning
    team_subscription_concurrency: int = 3

    @field_validator("webhook_public_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        # Graph answers 308 for trailing slashes, which fails validation
        return value.rstrip("/")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
