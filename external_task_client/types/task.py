"""
Task-related type definitions.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from external_task_client.constants import ENGINE_DATE_FORMAT

if TYPE_CHECKING:
    from external_task_client.task_service import TaskService


class ExternalTask(BaseModel):
    """
    A locked task as returned by the engine's fetch-and-lock call.

    Field names are snake_case; the engine's camelCase keys are accepted
    through aliases and unknown engine fields are kept as extras.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    id: str | None = None
    topic_name: str
    worker_id: str | None = None
    variables: Any = Field(default_factory=dict)
    lock_expiration_time: datetime | None = None
    business_key: str | None = None
    process_instance_id: str | None = None
    process_definition_id: str | None = None
    process_definition_key: str | None = None
    activity_id: str | None = None
    activity_instance_id: str | None = None
    execution_id: str | None = None
    retries: int | None = None
    error_message: str | None = None
    error_details: str | None = None
    priority: int | None = None
    tenant_id: str | None = None

    @field_validator("lock_expiration_time", mode="before")
    @classmethod
    def parse_engine_date(cls, value: Any) -> Any:
        """Parse the engine's date format (offset without a colon)."""
        if isinstance(value, str):
            try:
                return datetime.strptime(value, ENGINE_DATE_FORMAT)
            except ValueError:
                return value
        return value


@dataclass
class TaskContext:
    """
    Context passed to topic handlers.

    task.variables is a Variables accessor and task_service is bound to
    this task. Built once per dispatch.
    """

    task: ExternalTask
    task_service: "TaskService"
