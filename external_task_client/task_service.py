"""
Per-task completion service.

A TaskService is bound to one fetched task and reports its outcome to the
engine. Handlers are responsible for calling one of the reporting methods
before the task's lock expires.
"""

import logging
from collections.abc import Awaitable, Mapping
from typing import Any

from external_task_client.constants import SPAN_TASK_OPERATION
from external_task_client.engine import EngineService
from external_task_client.events import EventEmitter
from external_task_client.observability.metrics import MetricsCollector, get_metrics
from external_task_client.observability.tracing import get_tracer
from external_task_client.types.task import ExternalTask
from external_task_client.variables import Variables, to_wire_variables

logger = logging.getLogger(__name__)


class TaskService:
    """
    Completion API for a single task.

    Every operation emits "<operation>:success" or "<operation>:error" on the
    client's event emitter. Errors are re-raised to the calling handler.
    """

    def __init__(
        self,
        task: ExternalTask,
        engine: EngineService,
        worker_id: str,
        events: EventEmitter | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self.task = task
        self.engine = engine
        self.worker_id = task.worker_id or worker_id
        self._events = events or EventEmitter()
        self._metrics = metrics or get_metrics()

    @property
    def task_id(self) -> str:
        if self.task.id is None:
            raise ValueError("Task has no id; it was not returned by fetch-and-lock")
        return self.task.id

    async def complete(
        self,
        variables: Variables | Mapping[str, Any] | None = None,
        local_variables: Variables | Mapping[str, Any] | None = None,
    ) -> None:
        """
        Complete the task.

        Args:
            variables: Process variables to set on completion.
            local_variables: Variables local to the task's execution.
        """
        await self._run(
            "complete",
            self.engine.complete(
                self.task_id,
                self.worker_id,
                variables=to_wire_variables(variables),
                local_variables=to_wire_variables(local_variables),
            ),
        )

    async def handle_failure(
        self,
        error_message: str | None = None,
        error_details: str | None = None,
        retries: int | None = None,
        retry_timeout: int | None = None,
    ) -> None:
        """
        Report a technical failure.

        Args:
            error_message: Short failure description.
            error_details: Full failure details, e.g. a traceback.
            retries: Remaining retries; 0 creates an incident.
            retry_timeout: Milliseconds before the task can be fetched again.
        """
        await self._run(
            "handle_failure",
            self.engine.handle_failure(
                self.task_id,
                self.worker_id,
                error_message=error_message,
                error_details=error_details,
                retries=retries,
                retry_timeout=retry_timeout,
            ),
        )

    async def handle_bpmn_error(
        self,
        error_code: str,
        error_message: str | None = None,
        variables: Variables | Mapping[str, Any] | None = None,
    ) -> None:
        """Report a business error identified by error_code."""
        await self._run(
            "handle_bpmn_error",
            self.engine.handle_bpmn_error(
                self.task_id,
                self.worker_id,
                error_code,
                error_message=error_message,
                variables=to_wire_variables(variables),
            ),
        )

    async def extend_lock(self, new_duration: int) -> None:
        """Extend the lock by new_duration milliseconds from now."""
        await self._run(
            "extend_lock",
            self.engine.extend_lock(self.task_id, self.worker_id, new_duration),
        )

    async def unlock(self) -> None:
        """Give the task back to the engine without reporting an outcome."""
        await self._run("unlock", self.engine.unlock(self.task_id))

    async def _run(self, operation: str, call: Awaitable[None]) -> None:
        with get_tracer().start_as_current_span(SPAN_TASK_OPERATION) as span:
            span.set_attribute("operation", operation)
            span.set_attribute("task_id", str(self.task.id))
            span.set_attribute("topic", self.task.topic_name)
            try:
                await call
            except Exception as e:
                logger.warning(
                    "Task operation failed",
                    extra={
                        "operation": operation,
                        "task_id": self.task.id,
                        "error": str(e),
                    },
                )
                self._metrics.record_task_operation(operation, "error")
                self._events.emit(f"{operation}:error", self.task, e)
                raise

        self._metrics.record_task_operation(operation, "success")
        self._events.emit(f"{operation}:success", self.task)
