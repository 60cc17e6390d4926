"""
Unit tests for the task completion service.
"""

import pytest

from conftest import FakeEngine
from external_task_client.errors import EngineError
from external_task_client.events import EventEmitter
from external_task_client.task_service import TaskService
from external_task_client.variables import Variables


class FailingEngine(FakeEngine):
    """Engine whose complete call fails."""

    async def complete(self, *args, **kwargs):
        raise EngineError("Task not locked by worker", status_code=500)


class TestTaskService:
    """Tests for TaskService."""

    @pytest.fixture
    def events(self) -> EventEmitter:
        """Create an event emitter."""
        return EventEmitter()

    @pytest.fixture
    def task(self, make_task):
        """A fetched task."""
        return make_task("foo", id="task-42")

    @pytest.fixture
    def service(self, task, fake_engine: FakeEngine, events: EventEmitter, metrics) -> TaskService:
        """Create a task service bound to the task."""
        return TaskService(task, fake_engine, "foobarId", events=events, metrics=metrics)

    @pytest.mark.asyncio
    async def test_complete_with_variables(self, service: TaskService, fake_engine: FakeEngine):
        """Test completion sends dirty variables and plain dicts typed."""
        variables = Variables().set("approved", True)

        await service.complete(variables, local_variables={"step": 2})

        assert fake_engine.calls == [
            (
                "complete",
                ("task-42", "foobarId"),
                {
                    "variables": {"approved": {"type": "Boolean", "value": True, "valueInfo": {}}},
                    "local_variables": {"step": {"type": "Integer", "value": 2, "valueInfo": {}}},
                },
            )
        ]

    @pytest.mark.asyncio
    async def test_complete_emits_success(self, service: TaskService, events: EventEmitter, task):
        """Test a successful call emits complete:success."""
        seen = []
        events.on("complete:success", seen.append)

        await service.complete()

        assert seen == [task]

    @pytest.mark.asyncio
    async def test_handle_failure(self, service: TaskService, fake_engine: FakeEngine):
        """Test failure reporting forwards retries and timeout."""
        await service.handle_failure(
            error_message="timeout",
            error_details="Traceback ...",
            retries=2,
            retry_timeout=1000,
        )

        name, args, kwargs = fake_engine.calls[0]
        assert name == "handle_failure"
        assert args == ("task-42", "foobarId")
        assert kwargs == {
            "error_message": "timeout",
            "error_details": "Traceback ...",
            "retries": 2,
            "retry_timeout": 1000,
        }

    @pytest.mark.asyncio
    async def test_handle_bpmn_error(self, service: TaskService, fake_engine: FakeEngine):
        """Test BPMN errors carry the error code."""
        await service.handle_bpmn_error("CARD_DECLINED", "declined", {"reason": "limit"})

        name, args, kwargs = fake_engine.calls[0]
        assert name == "handle_bpmn_error"
        assert args == ("task-42", "foobarId", "CARD_DECLINED")
        assert kwargs["error_message"] == "declined"
        assert kwargs["variables"] == {"reason": {"type": "String", "value": "limit", "valueInfo": {}}}

    @pytest.mark.asyncio
    async def test_extend_lock_and_unlock(self, service: TaskService, fake_engine: FakeEngine):
        """Test lock management calls."""
        await service.extend_lock(60000)
        await service.unlock()

        assert fake_engine.calls == [
            ("extend_lock", ("task-42", "foobarId", 60000), {}),
            ("unlock", ("task-42",), {}),
        ]

    @pytest.mark.asyncio
    async def test_engine_error_is_raised_and_emitted(self, task, events: EventEmitter, metrics, metrics_registry):
        """Test engine failures reach the handler and the error event."""
        service = TaskService(task, FailingEngine(), "foobarId", events=events, metrics=metrics)
        errors = []
        events.on("complete:error", lambda failed, error: errors.append((failed, error)))

        with pytest.raises(EngineError):
            await service.complete()

        assert errors[0][0] is task
        assert isinstance(errors[0][1], EngineError)
        assert metrics_registry.get_sample_value(
            "external_task_operations_total", {"operation": "complete", "status": "error"}
        ) == 1.0

    def test_task_without_id_is_rejected(self, make_task, fake_engine: FakeEngine, metrics):
        """Test a record that was not fetched cannot be completed."""
        service = TaskService(make_task("foo", id=None), fake_engine, "foobarId", metrics=metrics)

        with pytest.raises(ValueError):
            service.task_id
