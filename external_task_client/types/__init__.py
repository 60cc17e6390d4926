"""
Type definitions for the external task client.
"""

from external_task_client.types.options import ClientOptions
from external_task_client.types.subscription import (
    Subscription,
    SubscriptionConfig,
    TaskHandler,
)
from external_task_client.types.task import ExternalTask, TaskContext

__all__ = [
    "ClientOptions",
    "ExternalTask",
    "Subscription",
    "SubscriptionConfig",
    "TaskContext",
    "TaskHandler",
]
