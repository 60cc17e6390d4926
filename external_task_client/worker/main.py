"""
Worker process for polling the engine.

Builds a Client from settings, loads the configured middlewares (which
subscribe the worker's handlers) and polls until SIGTERM/SIGINT.
"""

import asyncio
import importlib
import logging
import signal
from collections.abc import Callable
from typing import Any

from external_task_client.client import Client
from external_task_client.config import Settings, get_settings
from external_task_client.interceptors import BasicAuthInterceptor
from external_task_client.middlewares import logger as logger_middleware
from external_task_client.observability.logging import bind_context, clear_context, setup_logging
from external_task_client.observability.metrics import setup_metrics
from external_task_client.observability.tracing import setup_tracing

logger = logging.getLogger(__name__)


def load_middleware(path: str) -> Callable[..., Any]:
    """
    Import a middleware from a "package.module:callable" path.

    Raises:
        ValueError: If the path is malformed or does not name a callable.
    """
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Middleware path must look like 'module:callable', got {path!r}")

    module = importlib.import_module(module_name)
    middleware = getattr(module, attr)
    if not callable(middleware):
        raise ValueError(f"Middleware {path!r} is not callable")
    return middleware


def build_client(settings: Settings) -> Client:
    """Build a client from settings. Must run inside the event loop."""
    interceptors = []
    if settings.username and settings.password:
        interceptors.append(BasicAuthInterceptor(settings.username, settings.password))

    middlewares = [logger_middleware.level(settings.log_level)]
    middlewares.extend(load_middleware(path) for path in settings.middlewares)

    return Client(
        **settings.client_options(),
        interceptors=interceptors or None,
        use=middlewares,
    )


async def run_async(
    settings: Settings | None = None,
    shutdown: asyncio.Event | None = None,
) -> None:
    """
    Run the worker until a shutdown signal arrives.

    Args:
        settings: Worker settings, read from the environment when omitted.
        shutdown: Event that stops the worker when set. SIGTERM and SIGINT
            set it as well.
    """
    settings = settings or get_settings()

    setup_logging(settings)
    setup_metrics(settings.prometheus_port)
    if settings.otel_enabled:
        setup_tracing(settings)

    # Every log line from this worker carries its id
    bind_context(worker_id=settings.worker_id)
    try:
        await _serve(settings, shutdown or asyncio.Event())
    finally:
        clear_context()


async def _serve(settings: Settings, shutdown: asyncio.Event) -> None:
    client = build_client(settings)
    if not client.registry.active_topics():
        logger.warning("No topics subscribed; configure EXTERNAL_TASK_MIDDLEWARES")

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown.set)

    client.start()
    logger.info(
        "Worker running",
        extra={"worker_id": client.options.worker_id, "topics": client.registry.active_topics()},
    )

    try:
        await shutdown.wait()
    finally:
        logger.info("Worker stopping", extra={"worker_id": client.options.worker_id})
        await client.aclose()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)

    logger.info("Worker stopped", extra={"worker_id": client.options.worker_id})


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
