"""
Client constants.
Centralized location for all constant values used across the client.
"""

from enum import StrEnum


class SchedulerState(StrEnum):
    """
    Poll scheduler states.

    State transitions:
    - STOPPED -> IDLE (start, no active topics)
    - STOPPED -> FETCHING (start, fetch-and-lock issued)
    - IDLE -> FETCHING (timer fired, fetch-and-lock issued)
    - FETCHING -> IDLE (fetch settled, reschedule armed)
    - IDLE/FETCHING -> STOPPED (stop)
    """

    STOPPED = "stopped"
    IDLE = "idle"
    FETCHING = "fetching"


class VariableType(StrEnum):
    """Value types understood by the engine's variable API."""

    NULL = "Null"
    BOOLEAN = "Boolean"
    INTEGER = "Integer"
    LONG = "Long"
    DOUBLE = "Double"
    STRING = "String"
    DATE = "Date"
    JSON = "Json"
    OBJECT = "Object"
    FILE = "File"


# Default client options
DEFAULT_WORKER_ID = "some-random-id"
DEFAULT_MAX_TASKS = 10
DEFAULT_INTERVAL_MS = 300
DEFAULT_LOCK_DURATION_MS = 50000
DEFAULT_AUTO_POLL = True
DEFAULT_USE_PRIORITY = True

# Engine REST paths
FETCH_AND_LOCK_PATH = "/external-task/fetchAndLock"
COMPLETE_PATH = "/external-task/{task_id}/complete"
FAILURE_PATH = "/external-task/{task_id}/failure"
BPMN_ERROR_PATH = "/external-task/{task_id}/bpmnError"
EXTEND_LOCK_PATH = "/external-task/{task_id}/extendLock"
UNLOCK_PATH = "/external-task/{task_id}/unlock"

# Engine date format, e.g. 2026-10-19T08:30:00.000+0000
ENGINE_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

# Client event names
EVENT_SUBSCRIBE = "subscribe"
EVENT_UNSUBSCRIBE = "unsubscribe"
EVENT_POLL_START = "poll:start"
EVENT_POLL_STOP = "poll:stop"
EVENT_POLL_SUCCESS = "poll:success"
EVENT_POLL_ERROR = "poll:error"
EVENT_TASK_UNHANDLED = "task:unhandled"

TASK_OPERATIONS = (
    "complete",
    "handle_failure",
    "handle_bpmn_error",
    "extend_lock",
    "unlock",
)

# Metrics names
METRIC_POLL_CYCLES = "external_task_poll_cycles_total"
METRIC_POLL_ERRORS = "external_task_poll_errors_total"
METRIC_FETCH_DURATION = "external_task_fetch_and_lock_duration_seconds"
METRIC_TASKS_FETCHED = "external_task_tasks_fetched_total"
METRIC_TASKS_DISPATCHED = "external_task_tasks_dispatched_total"
METRIC_TASKS_UNHANDLED = "external_task_tasks_unhandled_total"
METRIC_HANDLER_ERRORS = "external_task_handler_errors_total"
METRIC_TASK_OPERATIONS = "external_task_operations_total"

# Trace span names
SPAN_FETCH_AND_LOCK = "fetch_and_lock"
SPAN_DISPATCH_TASK = "dispatch_task"
SPAN_TASK_OPERATION = "task_operation"
