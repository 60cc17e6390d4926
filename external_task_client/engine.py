"""
HTTP gateway to the engine's external task REST API.

The gateway owns request shaping and error translation; polling and
dispatch decisions are made by the scheduler.
"""

import inspect
import logging
from collections.abc import Callable
from typing import Any

import httpx

from external_task_client.constants import (
    BPMN_ERROR_PATH,
    COMPLETE_PATH,
    EXTEND_LOCK_PATH,
    FAILURE_PATH,
    FETCH_AND_LOCK_PATH,
    UNLOCK_PATH,
)
from external_task_client.errors import EngineError
from external_task_client.types.task import ExternalTask

logger = logging.getLogger(__name__)

# Applied to every outgoing httpx.Request, sync or async
Interceptor = Callable[[httpx.Request], Any]

DEFAULT_TIMEOUT_SECONDS = 30.0


class EngineService:
    """
    Async client for the engine's external task endpoints.

    Interceptors run, in order, on every request before it is sent. They
    mutate the request in place (e.g. set auth headers).
    """

    def __init__(
        self,
        base_url: str,
        interceptors: list[Interceptor] | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the gateway.

        Args:
            base_url: Engine REST root, e.g. http://localhost:8080/engine-rest.
            interceptors: Request interceptors applied to every call.
            timeout: Request timeout in seconds, excluding long-poll time.
            transport: Optional httpx transport, used by tests.
        """
        self.base_url = base_url
        self.interceptors: list[Interceptor] = list(interceptors or [])
        self._timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
            event_hooks={"request": [self._apply_interceptors]},
        )

    async def _apply_interceptors(self, request: httpx.Request) -> None:
        for interceptor in self.interceptors:
            result = interceptor(request)
            if inspect.isawaitable(result):
                await result

    async def _post(
        self,
        path: str,
        body: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        extra: dict[str, Any] = {}
        if timeout is not None:
            extra["timeout"] = timeout

        try:
            response = await self._client.post(
                path,
                json=body if body is not None else {},
                **extra,
            )
        except httpx.HTTPError as e:
            raise EngineError(f"Request to {path} failed: {e}") from e

        if response.is_error:
            raise _engine_error(path, response)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def fetch_and_lock(
        self,
        worker_id: str,
        max_tasks: int,
        topics: list[dict[str, Any]],
        use_priority: bool = True,
        async_response_timeout: int | None = None,
    ) -> list[ExternalTask]:
        """
        Fetch and lock a batch of tasks for the given topics.

        Args:
            worker_id: Worker identifier the tasks are locked for.
            max_tasks: Maximum number of tasks to return.
            topics: Topic entries ({"topicName", "lockDuration", ...}).
            use_priority: Ask the engine to order by task priority.
            async_response_timeout: Long-polling timeout in milliseconds.

        Returns:
            The locked tasks, in the order the engine returned them.
        """
        body: dict[str, Any] = {
            "workerId": worker_id,
            "maxTasks": max_tasks,
            "usePriority": use_priority,
            "topics": topics,
        }
        timeout = None
        if async_response_timeout is not None:
            body["asyncResponseTimeout"] = async_response_timeout
            timeout = self._timeout + async_response_timeout / 1000

        payload = await self._post(FETCH_AND_LOCK_PATH, body, timeout=timeout)
        return [ExternalTask.model_validate(item) for item in payload or []]

    async def complete(
        self,
        task_id: str,
        worker_id: str,
        variables: dict[str, Any] | None = None,
        local_variables: dict[str, Any] | None = None,
    ) -> None:
        """Complete a task, optionally passing process and local variables."""
        body: dict[str, Any] = {"workerId": worker_id}
        if variables:
            body["variables"] = variables
        if local_variables:
            body["localVariables"] = local_variables
        await self._post(COMPLETE_PATH.format(task_id=task_id), body)

    async def handle_failure(
        self,
        task_id: str,
        worker_id: str,
        error_message: str | None = None,
        error_details: str | None = None,
        retries: int | None = None,
        retry_timeout: int | None = None,
    ) -> None:
        """Report a technical failure; retries=0 raises an incident on the engine."""
        body: dict[str, Any] = {"workerId": worker_id}
        if error_message is not None:
            body["errorMessage"] = error_message
        if error_details is not None:
            body["errorDetails"] = error_details
        if retries is not None:
            body["retries"] = retries
        if retry_timeout is not None:
            body["retryTimeout"] = retry_timeout
        await self._post(FAILURE_PATH.format(task_id=task_id), body)

    async def handle_bpmn_error(
        self,
        task_id: str,
        worker_id: str,
        error_code: str,
        error_message: str | None = None,
        variables: dict[str, Any] | None = None,
    ) -> None:
        """Report a business error to be caught by the process model."""
        body: dict[str, Any] = {"workerId": worker_id, "errorCode": error_code}
        if error_message is not None:
            body["errorMessage"] = error_message
        if variables:
            body["variables"] = variables
        await self._post(BPMN_ERROR_PATH.format(task_id=task_id), body)

    async def extend_lock(self, task_id: str, worker_id: str, new_duration: int) -> None:
        """Extend a task's lock by new_duration milliseconds from now."""
        body = {"workerId": worker_id, "newDuration": new_duration}
        await self._post(EXTEND_LOCK_PATH.format(task_id=task_id), body)

    async def unlock(self, task_id: str) -> None:
        """Release a task's lock so other workers can fetch it."""
        await self._post(UNLOCK_PATH.format(task_id=task_id))

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()


def _engine_error(path: str, response: httpx.Response) -> EngineError:
    try:
        body = response.json()
    except ValueError:
        body = response.text

    message = None
    if isinstance(body, dict):
        message = body.get("message")

    return EngineError(
        message or f"Engine responded {response.status_code} to {path}",
        status_code=response.status_code,
        response_body=body,
    )
