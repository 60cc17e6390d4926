"""
External task client.

Validates options, wires the engine gateway, subscription registry,
dispatcher and poll scheduler together, and exposes the subscription and
lifecycle API used by worker code.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

import httpx

from external_task_client.constants import (
    EVENT_POLL_START,
    EVENT_POLL_STOP,
    EVENT_SUBSCRIBE,
    EVENT_UNSUBSCRIBE,
    SchedulerState,
)
from external_task_client.dispatcher import Dispatcher
from external_task_client.engine import EngineService
from external_task_client.errors import (
    ClientError,
    MissingBaseUrlError,
    WrongInterceptorError,
    WrongMiddlewaresError,
)
from external_task_client.events import EventEmitter, Listener
from external_task_client.observability.metrics import MetricsCollector, get_metrics
from external_task_client.scheduler import Clock, PollScheduler
from external_task_client.subscriptions import SubscriptionHandle, SubscriptionRegistry
from external_task_client.types.options import ClientOptions
from external_task_client.types.subscription import (
    Subscription,
    SubscriptionConfig,
    TaskHandler,
)
from external_task_client.types.task import ExternalTask

logger = logging.getLogger(__name__)


def normalize_extensions(
    value: Any,
    error: type[ClientError],
) -> list[Callable[..., Any]]:
    """
    Normalize an extension option to a list of callables.

    Accepts None, a single callable, or a non-empty list/tuple of callables.

    Raises:
        error: For an empty sequence or any non-callable value.
    """
    if value is None:
        return []
    if callable(value):
        return [value]
    if isinstance(value, (list, tuple)) and value and all(callable(item) for item in value):
        return list(value)
    raise error()


class Client:
    """
    Worker-side client for the engine's external task queue.

    Example:
        client = Client(base_url="http://localhost:8080/engine-rest", auto_poll=False)

        @client.topic("send-invoice", lock_duration=10000)
        async def send_invoice(context: TaskContext) -> None:
            await context.task_service.complete()

        client.start()
    """

    def __init__(
        self,
        options: ClientOptions | Mapping[str, Any] | None = None,
        *,
        clock: Clock | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        metrics: MetricsCollector | None = None,
        **kwargs: Any,
    ):
        """
        Initialize the client.

        Options may be passed as a ClientOptions, a mapping, keyword
        arguments, or a mix of a mapping and keyword overrides.

        Args:
            options: Client options.
            clock: Timer source for the scheduler (tests).
            transport: httpx transport for the engine gateway (tests).
            metrics: Metrics collector. Defaults to the process-wide one.
            **kwargs: Option overrides: base_url, worker_id, max_tasks,
                interval, lock_duration, auto_poll, async_response_timeout,
                use_priority, interceptors, use.

        Raises:
            MissingBaseUrlError: If base_url is missing or empty.
            WrongInterceptorError: If interceptors is malformed.
            WrongMiddlewaresError: If use is malformed.
        """
        self.options = self._build_options(options, kwargs)
        self.events = EventEmitter()
        self._metrics = metrics or get_metrics()

        self.engine_service = EngineService(
            self.options.base_url,
            interceptors=list(self.options.interceptors),
            transport=transport,
        )
        self.registry = SubscriptionRegistry(
            self.options.lock_duration,
            on_revoke=self._on_unsubscribe,
        )
        self.dispatcher = Dispatcher(
            self.registry,
            self.engine_service,
            self.options.worker_id,
            events=self.events,
            metrics=self._metrics,
        )
        self.scheduler = PollScheduler(
            self.options,
            self.registry,
            self.engine_service,
            self.dispatcher.dispatch,
            clock=clock,
            events=self.events,
            metrics=self._metrics,
        )

        for middleware in self.options.use:
            middleware(self)

        if self.options.auto_poll:
            self.start()

    @staticmethod
    def _build_options(
        options: ClientOptions | Mapping[str, Any] | None,
        overrides: Mapping[str, Any],
    ) -> ClientOptions:
        if isinstance(options, ClientOptions):
            if not options.base_url and not overrides.get("base_url"):
                raise MissingBaseUrlError()
            if not overrides:
                return options
            # Empty extension tuples mean "not set" here
            options = {key: value for key, value in options if value != ()}

        values = {**(options or {}), **overrides}

        if not values.get("base_url"):
            raise MissingBaseUrlError()

        values["interceptors"] = tuple(
            normalize_extensions(values.get("interceptors"), WrongInterceptorError)
        )
        values["use"] = tuple(normalize_extensions(values.get("use"), WrongMiddlewaresError))

        # Unset options fall back to their defaults
        values = {key: value for key, value in values.items() if value is not None}
        return ClientOptions(**values)

    @property
    def topic_subscriptions(self) -> dict[str, Subscription]:
        """Current subscriptions keyed by topic."""
        return self.registry.as_dict()

    @property
    def state(self) -> SchedulerState:
        return self.scheduler.state

    def subscribe(
        self,
        topic: str,
        config_or_handler: SubscriptionConfig | Mapping[str, Any] | TaskHandler | None = None,
        handler: TaskHandler | None = None,
        *,
        config: SubscriptionConfig | Mapping[str, Any] | None = None,
    ) -> SubscriptionHandle:
        """
        Subscribe a handler to a topic.

        Both subscribe(topic, handler) and subscribe(topic, config, handler)
        are accepted. A subscription made while polling is picked up by the
        next poll cycle.

        Args:
            topic: Topic name.
            config_or_handler: Either the handler or the topic config.
            handler: The handler, when a config is passed positionally.
            config: Topic config as a keyword argument.

        Returns:
            SubscriptionHandle with lock_duration, handler and unsubscribe().

        Raises:
            MissingHandlerError: If no callable handler is given.
            AlreadyRegisteredError: If the topic is already subscribed.
        """
        if handler is None and callable(config_or_handler):
            handler = config_or_handler
        elif config_or_handler is not None:
            config = config_or_handler

        subscription = self.registry.register(topic, handler, config)
        self.events.emit(EVENT_SUBSCRIBE, topic, subscription)
        return subscription

    def topic(self, name: str, **config: Any) -> Callable[[TaskHandler], TaskHandler]:
        """
        Decorator to subscribe a handler to a topic.

        Example:
            @client.topic("charge-card", lock_duration=5000)
            async def charge_card(context: TaskContext) -> None:
                ...
        """
        def decorator(handler: TaskHandler) -> TaskHandler:
            self.subscribe(topic=name, handler=handler, config=config or None)
            return handler
        return decorator

    def on(self, event: str, listener: Listener) -> Listener:
        """Register a listener for a client event."""
        return self.events.on(event, listener)

    def start(self) -> None:
        """
        Start polling.

        Raises:
            EventLoopRequiredError: If called outside a running event loop.
        """
        if self.scheduler.running:
            return
        self.scheduler.start()
        self.events.emit(EVENT_POLL_START)

    def stop(self) -> None:
        """Stop polling. In-flight fetches and running handlers are not cancelled."""
        if not self.scheduler.running:
            return
        self.scheduler.stop()
        self.events.emit(EVENT_POLL_STOP)

    def poll(self) -> None:
        """Run one poll cycle now."""
        self.scheduler.poll()

    def execute_task(self, task: ExternalTask | Mapping[str, Any]) -> None:
        """Dispatch a single task to its topic's handler."""
        if not isinstance(task, ExternalTask):
            task = ExternalTask.model_validate(task)
        self.dispatcher.dispatch(task)

    async def aclose(self) -> None:
        """
        Shut the client down.

        Stops polling, cancels an outstanding fetch, waits for running
        handlers and closes the engine connection.
        """
        self.stop()
        await self.scheduler.close()
        await self.dispatcher.wait_handlers()
        await self.engine_service.aclose()

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    def _on_unsubscribe(self, subscription: Subscription) -> None:
        self.events.emit(EVENT_UNSUBSCRIBE, subscription.topic, subscription)
