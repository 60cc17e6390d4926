"""
Poll scheduler.

Decides when to ask the engine for work. One poll cycle reads the active
topics; with none it only re-arms the interval timer, otherwise it issues a
single fetch-and-lock call. At most one fetch-and-lock call is outstanding at
any time, and the next cycle is armed one interval after the previous call
settles.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any, Protocol

from external_task_client.constants import (
    EVENT_POLL_ERROR,
    EVENT_POLL_SUCCESS,
    SPAN_FETCH_AND_LOCK,
    SchedulerState,
)
from external_task_client.engine import EngineService
from external_task_client.errors import EventLoopRequiredError
from external_task_client.events import EventEmitter
from external_task_client.observability.metrics import MetricsCollector, get_metrics
from external_task_client.observability.tracing import get_tracer
from external_task_client.subscriptions import SubscriptionRegistry
from external_task_client.types.options import ClientOptions
from external_task_client.types.task import ExternalTask

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> Any: ...


class Clock(Protocol):
    """Source of delayed callbacks for the scheduler."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioClock:
    """Clock backed by the running event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class PollScheduler:
    """
    Timer and single-flight state machine driving fetch-and-lock.

    State:
    - running: toggled by start()/stop()
    - pending_fetch: a fetch-and-lock call is outstanding
    - timer: the single armed reschedule, cancelled on stop()

    stop() only prevents future cycles. An in-flight fetch still dispatches
    the tasks it returns, and handlers already running are left alone.
    """

    def __init__(
        self,
        options: ClientOptions,
        registry: SubscriptionRegistry,
        engine: EngineService,
        dispatch: Callable[[ExternalTask], None],
        clock: Clock | None = None,
        events: EventEmitter | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the scheduler.

        Args:
            options: Client options (worker id, max tasks, interval, ...).
            registry: Subscription registry read on every cycle.
            engine: Gateway used for fetch-and-lock.
            dispatch: Called with every returned task, in engine order.
            clock: Timer source. Defaults to the running event loop.
            events: Emitter for poll:success / poll:error.
            metrics: Metrics collector.
        """
        self._options = options
        self._registry = registry
        self._engine = engine
        self._dispatch = dispatch
        self._clock = clock or AsyncioClock()
        self._events = events or EventEmitter()
        self._metrics = metrics or get_metrics()

        self._running = False
        self._pending_fetch = False
        self._timer: TimerHandle | None = None
        self._fetch_task: asyncio.Task | None = None

        # Number of poll cycles run so far
        self.cycles = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending_fetch(self) -> bool:
        return self._pending_fetch

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None

    @property
    def state(self) -> SchedulerState:
        if not self._running:
            return SchedulerState.STOPPED
        if self._pending_fetch:
            return SchedulerState.FETCHING
        return SchedulerState.IDLE

    def start(self) -> None:
        """
        Start polling with an immediate cycle. No-op when already running.

        Raises:
            EventLoopRequiredError: If no event loop is running. The
                scheduler is left stopped.
        """
        if self._running:
            return

        try:
            asyncio.get_running_loop()
        except RuntimeError as e:
            raise EventLoopRequiredError() from e

        self._running = True
        logger.info(
            "Polling started",
            extra={
                "worker_id": self._options.worker_id,
                "interval_ms": self._options.interval,
            },
        )
        self.poll()

    def stop(self) -> None:
        """Stop scheduling poll cycles; an in-flight fetch is not cancelled."""
        if not self._running:
            return

        self._running = False
        self._cancel_timer()
        logger.info("Polling stopped", extra={"worker_id": self._options.worker_id})

    def poll(self) -> None:
        """
        Run one poll cycle.

        Does nothing while stopped or while a fetch-and-lock call is
        outstanding.
        """
        if not self._running or self._pending_fetch:
            return

        self.cycles += 1
        self._cancel_timer()

        topics = self._registry.fetch_topics()
        if not topics:
            # Heartbeat: pick up later subscriptions within one interval
            self._metrics.record_poll("idle")
            self._arm_timer()
            return

        loop = asyncio.get_running_loop()
        self._metrics.record_poll("fetch")
        self._fetch_task = loop.create_task(self._run_fetch(topics))
        self._pending_fetch = True

    async def close(self) -> None:
        """Stop polling and cancel an outstanding fetch-and-lock call."""
        self.stop()

        task = self._fetch_task
        if task is None or task.done():
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("Cancelled in-flight fetch-and-lock")

    async def _run_fetch(self, topics: list[dict[str, Any]]) -> None:
        try:
            tasks = await self._fetch_and_lock(topics)
            for task in tasks:
                try:
                    self._dispatch(task)
                except Exception:
                    logger.exception("Dispatch failed", extra={"task_id": task.id})
        finally:
            self._pending_fetch = False
            self._fetch_task = None

        if self._running:
            self._arm_timer()

    async def _fetch_and_lock(self, topics: list[dict[str, Any]]) -> list[ExternalTask]:
        """Call the engine; a failed call counts as an empty batch."""
        start_time = time.perf_counter()

        with get_tracer().start_as_current_span(SPAN_FETCH_AND_LOCK) as span:
            span.set_attribute("worker_id", self._options.worker_id)
            span.set_attribute("topics", [topic["topicName"] for topic in topics])
            try:
                tasks = await self._engine.fetch_and_lock(
                    worker_id=self._options.worker_id,
                    max_tasks=self._options.max_tasks,
                    topics=topics,
                    use_priority=self._options.use_priority,
                    async_response_timeout=self._options.async_response_timeout,
                )
            except Exception as e:
                logger.warning(
                    "Fetch and lock failed",
                    extra={"worker_id": self._options.worker_id, "error": str(e)},
                )
                span.record_exception(e)
                self._metrics.record_poll_error()
                self._events.emit(EVENT_POLL_ERROR, e)
                return []

            span.set_attribute("task_count", len(tasks))

        self._metrics.record_fetch(
            time.perf_counter() - start_time,
            [task.topic_name for task in tasks],
        )
        if tasks:
            logger.info(
                f"Fetched {len(tasks)} tasks",
                extra={"worker_id": self._options.worker_id},
            )
        self._events.emit(EVENT_POLL_SUCCESS, tasks)
        return tasks

    def _arm_timer(self) -> None:
        self._cancel_timer()
        self._timer = self._clock.call_later(self._options.interval_seconds, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        self.poll()
