"""
Client option type definitions.
"""

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from external_task_client.constants import (
    DEFAULT_AUTO_POLL,
    DEFAULT_INTERVAL_MS,
    DEFAULT_LOCK_DURATION_MS,
    DEFAULT_MAX_TASKS,
    DEFAULT_USE_PRIORITY,
    DEFAULT_WORKER_ID,
)
from external_task_client.errors import MissingBaseUrlError


class ClientOptions(BaseModel):
    """
    Immutable client configuration captured at construction.

    Durations and the poll interval are milliseconds, as the engine expects.
    interceptors and use hold the normalized (list) form of the extension
    options.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    base_url: str
    worker_id: str = DEFAULT_WORKER_ID
    max_tasks: int = Field(default=DEFAULT_MAX_TASKS, gt=0)
    interval: int = Field(default=DEFAULT_INTERVAL_MS, ge=0)
    lock_duration: int = Field(default=DEFAULT_LOCK_DURATION_MS, gt=0)
    auto_poll: bool = DEFAULT_AUTO_POLL
    async_response_timeout: int | None = None
    use_priority: bool = DEFAULT_USE_PRIORITY
    interceptors: tuple[Callable[..., Any], ...] = ()
    use: tuple[Callable[..., Any], ...] = ()

    @field_validator("base_url")
    @classmethod
    def require_base_url(cls, value: str) -> str:
        if not value:
            raise MissingBaseUrlError()
        return value

    @property
    def interval_seconds(self) -> float:
        """Poll interval in seconds, for the scheduler clock."""
        return self.interval / 1000
