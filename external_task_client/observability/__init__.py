"""
Observability module.
Contains logging, metrics, and tracing setup.
"""

from external_task_client.observability.logging import get_logger, setup_logging
from external_task_client.observability.metrics import (
    MetricsCollector,
    get_metrics,
    setup_metrics,
)
from external_task_client.observability.tracing import get_tracer, setup_tracing

__all__ = [
    "setup_logging",
    "get_logger",
    "setup_metrics",
    "get_metrics",
    "MetricsCollector",
    "setup_tracing",
    "get_tracer",
]
