"""
Task dispatcher.

Routes a fetched task to the handler subscribed to its topic. Handlers are
fire-and-forget: coroutine handlers are scheduled as tasks and never awaited
by the poll cycle.
"""

import asyncio
import inspect
import logging

from external_task_client.constants import EVENT_TASK_UNHANDLED, SPAN_DISPATCH_TASK
from external_task_client.engine import EngineService
from external_task_client.events import EventEmitter
from external_task_client.observability.metrics import MetricsCollector, get_metrics
from external_task_client.observability.tracing import get_tracer
from external_task_client.subscriptions import SubscriptionRegistry
from external_task_client.task_service import TaskService
from external_task_client.types.task import ExternalTask, TaskContext
from external_task_client.variables import Variables

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Invokes subscription handlers with a per-task TaskContext.

    Failures inside handlers are logged and counted; they never reach the
    scheduler.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        engine: EngineService,
        worker_id: str,
        events: EventEmitter | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self._registry = registry
        self._engine = engine
        self._worker_id = worker_id
        self._events = events or EventEmitter()
        self._metrics = metrics or get_metrics()
        self._running: set[asyncio.Task] = set()

    @property
    def running_handlers(self) -> int:
        """Number of coroutine handlers that have not finished yet."""
        return len(self._running)

    def dispatch(self, task: ExternalTask) -> None:
        """
        Hand a task to its topic's handler.

        Tasks without a subscription are dropped; the engine-side lock
        expires and the task becomes available again.
        """
        subscription = self._registry.resolve(task.topic_name)
        if subscription is None:
            logger.warning(
                "No subscription for task topic, dropping task",
                extra={"task_id": task.id, "topic": task.topic_name},
            )
            self._metrics.record_unhandled(task.topic_name)
            self._events.emit(EVENT_TASK_UNHANDLED, task)
            return

        context = self.build_context(task)
        self._metrics.record_dispatched(task.topic_name)

        with get_tracer().start_as_current_span(SPAN_DISPATCH_TASK) as span:
            span.set_attribute("task_id", str(task.id))
            span.set_attribute("topic", task.topic_name)
            try:
                result = subscription.handler(context)
            except Exception as e:
                self._handler_failed(task, e)
                return

        if inspect.isawaitable(result):
            handler_task = asyncio.ensure_future(result)
            self._running.add(handler_task)
            handler_task.add_done_callback(lambda done: self._handler_done(task, done))

    def build_context(self, task: ExternalTask) -> TaskContext:
        """Wrap a task's variables and bind a TaskService to it."""
        raw = task.variables
        if isinstance(raw, Variables):
            raw = raw.get_all_typed()
        variables = Variables(raw or {}, read_only=True)
        wrapped = task.model_copy(update={"variables": variables})
        task_service = TaskService(
            wrapped,
            self._engine,
            self._worker_id,
            events=self._events,
            metrics=self._metrics,
        )
        return TaskContext(task=wrapped, task_service=task_service)

    async def wait_handlers(self) -> None:
        """Wait for every running coroutine handler to finish."""
        if self._running:
            logger.info(f"Waiting for {len(self._running)} handlers to complete")
            await asyncio.gather(*self._running, return_exceptions=True)

    def _handler_done(self, task: ExternalTask, done: asyncio.Task) -> None:
        self._running.discard(done)
        if done.cancelled():
            return
        error = done.exception()
        if error is not None:
            self._handler_failed(task, error)

    def _handler_failed(self, task: ExternalTask, error: BaseException) -> None:
        logger.error(
            "Handler raised exception",
            extra={"task_id": task.id, "topic": task.topic_name, "error": str(error)},
            exc_info=error,
        )
        self._metrics.record_handler_error(task.topic_name)
