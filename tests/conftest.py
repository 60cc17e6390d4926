"""
Pytest configuration and shared fixtures.
"""

import asyncio
from collections.abc import Callable
from typing import Any

import httpx
import pytest
import structlog
from prometheus_client import CollectorRegistry

from external_task_client.observability.metrics import MetricsCollector
from external_task_client.types.task import ExternalTask

BASE_URL = "http://localhost:8080/engine-rest/"


class FakeTimer:
    """Timer handle returned by FakeClock."""

    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeClock:
    """
    Manually advanced clock for scheduler tests.

    advance() fires due timers in order, including timers armed by
    callbacks as long as they fall inside the advanced window.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.now + delay, callback)
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [timer for timer in self._timers if not timer.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [timer for timer in self.pending if timer.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self._timers.remove(timer)
            self.now = timer.when
            timer.callback()
        self.now = target


class FakeEngine:
    """
    In-memory engine gateway.

    fetch_and_lock returns queued batches (or raises queued errors). When
    hold() has been called, fetches block until release().
    """

    def __init__(self) -> None:
        self.interceptors: list[Any] = []
        self.fetch_calls: list[dict[str, Any]] = []
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self._batches: list[list[ExternalTask] | Exception] = []
        self._gate: asyncio.Event | None = None

    def queue(self, batch: list[ExternalTask] | Exception) -> None:
        self._batches.append(batch)

    def hold(self) -> None:
        self._gate = asyncio.Event()

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()

    async def fetch_and_lock(self, **kwargs: Any) -> list[ExternalTask]:
        self.fetch_calls.append(kwargs)
        if self._gate is not None:
            await self._gate.wait()
        if not self._batches:
            return []
        batch = self._batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return batch

    async def _record(self, name: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((name, args, kwargs))

    async def complete(self, *args: Any, **kwargs: Any) -> None:
        await self._record("complete", *args, **kwargs)

    async def handle_failure(self, *args: Any, **kwargs: Any) -> None:
        await self._record("handle_failure", *args, **kwargs)

    async def handle_bpmn_error(self, *args: Any, **kwargs: Any) -> None:
        await self._record("handle_bpmn_error", *args, **kwargs)

    async def extend_lock(self, *args: Any, **kwargs: Any) -> None:
        await self._record("extend_lock", *args, **kwargs)

    async def unlock(self, *args: Any, **kwargs: Any) -> None:
        await self._record("unlock", *args, **kwargs)


async def settle(predicate: Callable[[], bool] | None = None, rounds: int = 50) -> None:
    """Let pending event loop callbacks run, optionally until predicate holds."""
    for _ in range(rounds):
        if predicate is not None and predicate():
            return
        await asyncio.sleep(0)


def subscribe_echo(client: Any) -> None:
    """Middleware used by worker bootstrap tests."""
    client.subscribe("echo", lambda context: None)


# Log context seen by record_log_context, one entry per client built
LOG_CONTEXTS: list[dict[str, Any]] = []


def record_log_context(client: Any) -> None:
    """Middleware that records the structlog context bound at build time."""
    LOG_CONTEXTS.append(structlog.contextvars.get_contextvars())


@pytest.fixture
def clock() -> FakeClock:
    """Create a manually advanced clock."""
    return FakeClock()


@pytest.fixture
def fake_engine() -> FakeEngine:
    """Create an in-memory engine gateway."""
    return FakeEngine()


@pytest.fixture
def metrics_registry() -> CollectorRegistry:
    """Create an isolated Prometheus registry."""
    return CollectorRegistry()


@pytest.fixture
def metrics(metrics_registry: CollectorRegistry) -> MetricsCollector:
    """Create a metrics collector on an isolated registry."""
    return MetricsCollector(metrics_registry)


@pytest.fixture
def client_options() -> dict[str, Any]:
    """Custom client options; interval is 500 ms."""
    return {
        "base_url": BASE_URL,
        "worker_id": "foobarId",
        "max_tasks": 3,
        "interval": 500,
        "lock_duration": 30000,
    }


@pytest.fixture
def make_task() -> Callable[..., ExternalTask]:
    """Factory for fetched tasks."""
    counter = iter(range(1, 10_000))

    def factory(topic: str = "foo", **fields: Any) -> ExternalTask:
        data = {
            "id": f"task-{next(counter)}",
            "topicName": topic,
            "workerId": "foobarId",
            "variables": {},
        }
        data.update(fields)
        return ExternalTask.model_validate(data)

    return factory


class EngineTransport:
    """
    httpx mock transport recording requests.

    Routes are keyed by URL path suffix; unmatched requests get 204.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[str, Callable[[httpx.Request], Any]] = {}
        self.transport = httpx.MockTransport(self._handle)

    def route(self, suffix: str, handler: Callable[[httpx.Request], Any]) -> None:
        self.routes[suffix] = handler

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for suffix, handler in self.routes.items():
            if request.url.path.endswith(suffix):
                response = handler(request)
                if asyncio.iscoroutine(response):
                    response = await response
                return response
        return httpx.Response(204)


@pytest.fixture
def engine_transport() -> EngineTransport:
    """Create a recording engine transport."""
    return EngineTransport()
