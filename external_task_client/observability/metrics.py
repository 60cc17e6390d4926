"""
Prometheus metrics collection.
"""

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    start_http_server,
)

from external_task_client.constants import (
    METRIC_FETCH_DURATION,
    METRIC_HANDLER_ERRORS,
    METRIC_POLL_CYCLES,
    METRIC_POLL_ERRORS,
    METRIC_TASK_OPERATIONS,
    METRIC_TASKS_DISPATCHED,
    METRIC_TASKS_FETCHED,
    METRIC_TASKS_UNHANDLED,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the polling client.

    Collects metrics for:
    - Poll cycles and fetch-and-lock latency
    - Fetched, dispatched and unhandled tasks per topic
    - Handler failures
    - Task completion operations
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        # outcome: idle (no topics) or fetch
        self.poll_cycles = Counter(
            METRIC_POLL_CYCLES,
            "Total number of poll cycles",
            ["outcome"],
            registry=self._registry,
        )

        self.poll_errors = Counter(
            METRIC_POLL_ERRORS,
            "Total number of failed fetch-and-lock calls",
            registry=self._registry,
        )

        self.fetch_duration = Histogram(
            METRIC_FETCH_DURATION,
            "Fetch-and-lock call duration in seconds",
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )

        self.tasks_fetched = Counter(
            METRIC_TASKS_FETCHED,
            "Total number of tasks returned by fetch-and-lock",
            ["topic"],
            registry=self._registry,
        )

        self.tasks_dispatched = Counter(
            METRIC_TASKS_DISPATCHED,
            "Total number of tasks handed to a handler",
            ["topic"],
            registry=self._registry,
        )

        self.tasks_unhandled = Counter(
            METRIC_TASKS_UNHANDLED,
            "Total number of tasks dropped for lack of a subscription",
            ["topic"],
            registry=self._registry,
        )

        self.handler_errors = Counter(
            METRIC_HANDLER_ERRORS,
            "Total number of handler invocations that raised",
            ["topic"],
            registry=self._registry,
        )

        self.task_operations = Counter(
            METRIC_TASK_OPERATIONS,
            "Total number of task completion service calls",
            ["operation", "status"],
            registry=self._registry,
        )

    def record_poll(self, outcome: str) -> None:
        """Record a poll cycle."""
        self.poll_cycles.labels(outcome=outcome).inc()

    def record_fetch(self, duration_seconds: float, topics: list[str]) -> None:
        """Record a settled fetch-and-lock call and its tasks' topics."""
        self.fetch_duration.observe(duration_seconds)
        for topic in topics:
            self.tasks_fetched.labels(topic=topic).inc()

    def record_poll_error(self) -> None:
        """Record a failed fetch-and-lock call."""
        self.poll_errors.inc()

    def record_dispatched(self, topic: str) -> None:
        """Record a task handed to its handler."""
        self.tasks_dispatched.labels(topic=topic).inc()

    def record_unhandled(self, topic: str) -> None:
        """Record a task without a subscription."""
        self.tasks_unhandled.labels(topic=topic).inc()

    def record_handler_error(self, topic: str) -> None:
        """Record a handler failure."""
        self.handler_errors.labels(topic=topic).inc()

    def record_task_operation(self, operation: str, status: str) -> None:
        """Record a task completion service call."""
        self.task_operations.labels(operation=operation, status=status).inc()


def setup_metrics(port: int = 0) -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Args:
        port: Serve metrics over HTTP on this port. 0 disables the server.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    if port:
        start_http_server(port)
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
