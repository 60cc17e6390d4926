"""
Subscription type definitions.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from external_task_client.types.task import TaskContext

# A handler takes the task context and may return an awaitable
TaskHandler = Callable[[TaskContext], Any]


class SubscriptionConfig(BaseModel):
    """
    Per-topic fetch configuration.

    Every option other than lock_duration is forwarded to the engine in the
    topic entry of the fetch-and-lock request when it is set.
    """

    model_config = ConfigDict(extra="forbid")

    lock_duration: int | None = Field(default=None, gt=0)
    variables: list[str] | None = None
    business_key: str | None = None
    process_definition_id: str | None = None
    process_definition_key: str | None = None
    tenant_ids: list[str] | None = None
    without_tenant_id: bool | None = None
    local_variables: bool | None = None
    deserialize_values: bool | None = None


@dataclass
class Subscription:
    """A registered topic subscription, owned by the SubscriptionRegistry."""

    topic: str
    handler: TaskHandler
    lock_duration: int
    config: SubscriptionConfig = field(default_factory=SubscriptionConfig)

    def to_fetch_topic(self) -> dict[str, Any]:
        """Build the topic entry of a fetch-and-lock request."""
        entry: dict[str, Any] = {
            "topicName": self.topic,
            "lockDuration": self.lock_duration,
        }
        extra = self.config.model_dump(
            exclude={"lock_duration"},
            exclude_none=True,
        )
        for key, value in extra.items():
            entry[to_camel(key)] = value
        return entry

