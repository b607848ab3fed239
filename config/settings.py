"""Chat Gateway – Application Configuration.

Pydantic Settings for process-level knobs.
Loads from .env file or environment variables. Channel accounts and the
external message bridge live in the gateway YAML (see ``gateway_config_path``).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Gateway ---
    environment: str = "development"
    log_level: str = "info"
    gateway_host: str = "0.0.0.0"
    gateway_port: int = 8000
    cors_allowed_origins: str = "http://localhost:3000"

    # --- Redis ---
    redis_url: str = "redis://127.0.0.1:6379/0"

    # --- Channels / Bridge ---
    # Layered channel configuration (accounts, webhook secrets, external messages).
    gateway_config_path: str = "config/gateway.yaml"
    # Request bodies above this size are aborted before parsing.
    external_messages_max_body_bytes: int = 1024 * 1024

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def get_settings() -> Settings:
    """Factory function for settings singleton."""
    return Settings()
