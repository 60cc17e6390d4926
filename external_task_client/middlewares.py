"""
Client middlewares.

A middleware is called once with the constructed client, before polling
starts. The logger middleware logs client events with structlog.
"""

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from external_task_client.constants import (
    EVENT_POLL_ERROR,
    EVENT_POLL_START,
    EVENT_POLL_STOP,
    EVENT_POLL_SUCCESS,
    EVENT_SUBSCRIBE,
    EVENT_TASK_UNHANDLED,
    EVENT_UNSUBSCRIBE,
    TASK_OPERATIONS,
)
from external_task_client.observability.logging import get_logger

if TYPE_CHECKING:
    from external_task_client.client import Client

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class LoggerMiddleware:
    """
    Logs client events.

    Events below min_level are not subscribed to at all.
    """

    def __init__(self, min_level: int = logging.DEBUG):
        self.min_level = min_level
        self._log = get_logger("external_task_client.events")

    def level(self, name: str) -> "LoggerMiddleware":
        """Return a logger middleware that skips events below the named level."""
        if name.lower() not in _LEVELS:
            raise ValueError(f"Unknown log level: {name}")
        return LoggerMiddleware(_LEVELS[name.lower()])

    def __call__(self, client: "Client") -> None:
        self._listen(client, EVENT_SUBSCRIBE, logging.INFO, self._on_subscribe)
        self._listen(client, EVENT_UNSUBSCRIBE, logging.INFO, self._on_unsubscribe)
        self._listen(client, EVENT_POLL_START, logging.DEBUG, self._on_poll_start)
        self._listen(client, EVENT_POLL_STOP, logging.DEBUG, self._on_poll_stop)
        self._listen(client, EVENT_POLL_SUCCESS, logging.DEBUG, self._on_poll_success)
        self._listen(client, EVENT_POLL_ERROR, logging.ERROR, self._on_poll_error)
        self._listen(client, EVENT_TASK_UNHANDLED, logging.WARNING, self._on_unhandled)
        for operation in TASK_OPERATIONS:
            self._listen(
                client,
                f"{operation}:success",
                logging.INFO,
                self._on_operation_success(operation),
            )
            self._listen(
                client,
                f"{operation}:error",
                logging.ERROR,
                self._on_operation_error(operation),
            )

    def _listen(
        self,
        client: "Client",
        event: str,
        level: int,
        listener: Callable[..., Any],
    ) -> None:
        if level >= self.min_level:
            client.on(event, listener)

    def _on_subscribe(self, topic: str, subscription: Any) -> None:
        self._log.info("subscribed", topic=topic)

    def _on_unsubscribe(self, topic: str, subscription: Any) -> None:
        self._log.info("unsubscribed", topic=topic)

    def _on_poll_start(self) -> None:
        self._log.debug("polling")

    def _on_poll_stop(self) -> None:
        self._log.debug("polling stopped")

    def _on_poll_success(self, tasks: list[Any]) -> None:
        self._log.debug("polled", task_count=len(tasks))

    def _on_poll_error(self, error: Exception) -> None:
        self._log.error("polling failed", error=str(error))

    def _on_unhandled(self, task: Any) -> None:
        self._log.warning("no handler for task", task_id=task.id, topic=task.topic_name)

    def _on_operation_success(self, operation: str) -> Callable[[Any], None]:
        def listener(task: Any) -> None:
            self._log.info(f"{operation} succeeded", task_id=task.id)
        return listener

    def _on_operation_error(self, operation: str) -> Callable[[Any, Exception], None]:
        def listener(task: Any, error: Exception) -> None:
            self._log.error(f"{operation} failed", task_id=task.id, error=str(error))
        return listener


# Default instance: use=logger, or use=logger.level("info")
logger = LoggerMiddleware()
