"""
Client configuration using Pydantic Settings.
Loads worker configuration from environment variables with sensible defaults.
"""

from functools import lru_cache
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from external_task_client.constants import (
    DEFAULT_AUTO_POLL,
    DEFAULT_INTERVAL_MS,
    DEFAULT_LOCK_DURATION_MS,
    DEFAULT_MAX_TASKS,
    DEFAULT_USE_PRIORITY,
    DEFAULT_WORKER_ID,
)


class Settings(BaseSettings):
    """Worker settings loaded from EXTERNAL_TASK_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="EXTERNAL_TASK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Engine
    base_url: str | None = None
    username: str | None = None
    password: str | None = None

    # Polling
    worker_id: str = DEFAULT_WORKER_ID
    max_tasks: int = DEFAULT_MAX_TASKS
    interval: int = DEFAULT_INTERVAL_MS
    lock_duration: int = DEFAULT_LOCK_DURATION_MS
    auto_poll: bool = DEFAULT_AUTO_POLL
    async_response_timeout: int | None = None
    use_priority: bool = DEFAULT_USE_PRIORITY

    # Worker bootstrap: "package.module:callable" import paths
    middlewares: Annotated[list[str], NoDecode] = []

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"  # json or console
    otel_enabled: bool = False
    otel_service_name: str = "external-task-client"
    otel_exporter_otlp_endpoint: str = "http://localhost:4317"
    prometheus_port: int = 0  # 0 disables the metrics server

    @field_validator("middlewares", mode="before")
    @classmethod
    def split_middlewares(cls, value: Any) -> Any:
        """Accept a comma-separated string as well as a list."""
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    def client_options(self) -> dict[str, Any]:
        """Keyword arguments for building a Client from these settings."""
        return {
            "base_url": self.base_url,
            "worker_id": self.worker_id,
            "max_tasks": self.max_tasks,
            "interval": self.interval,
            "lock_duration": self.lock_duration,
            "auto_poll": self.auto_poll,
            "async_response_timeout": self.async_response_timeout,
            "use_priority": self.use_priority,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
