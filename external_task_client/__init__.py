"""
External Task Client

Worker-side client for a pull-based external task queue: subscribe handlers
to topics and the client fetches, locks and dispatches matching tasks.
"""

__version__ = "1.0.0"

from external_task_client.client import Client
from external_task_client.errors import (
    AlreadyRegisteredError,
    ClientError,
    EngineError,
    EventLoopRequiredError,
    MissingBaseUrlError,
    MissingHandlerError,
    WrongInterceptorError,
    WrongMiddlewaresError,
)
from external_task_client.interceptors import BasicAuthInterceptor, BearerTokenInterceptor
from external_task_client.middlewares import logger
from external_task_client.task_service import TaskService
from external_task_client.types import (
    ClientOptions,
    ExternalTask,
    SubscriptionConfig,
    TaskContext,
)
from external_task_client.variables import Variables

__all__ = [
    "__version__",
    "Client",
    "ClientOptions",
    "ExternalTask",
    "SubscriptionConfig",
    "TaskContext",
    "TaskService",
    "Variables",
    "BasicAuthInterceptor",
    "BearerTokenInterceptor",
    "logger",
    "ClientError",
    "EngineError",
    "EventLoopRequiredError",
    "MissingBaseUrlError",
    "AlreadyRegisteredError",
    "MissingHandlerError",
    "WrongInterceptorError",
    "WrongMiddlewaresError",
]
