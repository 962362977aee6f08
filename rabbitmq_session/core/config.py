"""Broker connection configuration."""

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Messaging settings.

    Every field has an explicit default and can be overridden with an
    environment variable of the same name (or a ``.env`` file).
    """

    # Connection
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_HEARTBEAT: int = 600
    RABBITMQ_BLOCKED_CONNECTION_TIMEOUT: int = 300

    # Seconds the consume loop waits for broker frames before checking for stop
    RABBITMQ_POLL_INTERVAL: float = 1.0

    # Listener topology
    RABBITMQ_EXCHANGE: Optional[str] = None
    RABBITMQ_EXCHANGE_TYPE: str = "direct"
    RABBITMQ_QUEUE: Optional[str] = None
    RABBITMQ_ROUTING_KEY: str = ""
    RABBITMQ_CONSUMER_TAG: str = ""

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra environment variables
    )

    @field_validator("RABBITMQ_PORT")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError("RABBITMQ_PORT must be between 1 and 65535")
        return v

    @field_validator("RABBITMQ_POLL_INTERVAL")
    @classmethod
    def validate_poll_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("RABBITMQ_POLL_INTERVAL must be positive")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings instance (built on first use)."""
    return Settings()
