"""
Topic subscription registry.

Maps each topic to its handler and fetch configuration. The scheduler reads
it once per poll cycle; the dispatcher resolves returned tasks through it.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from external_task_client.errors import AlreadyRegisteredError, MissingHandlerError
from external_task_client.types.subscription import (
    Subscription,
    SubscriptionConfig,
    TaskHandler,
)

logger = logging.getLogger(__name__)


class SubscriptionHandle:
    """Returned by a registration; revokes the subscription on unsubscribe()."""

    def __init__(self, subscription: Subscription, revoke: Callable[[str], None]):
        self._subscription = subscription
        self._revoke = revoke

    @property
    def topic(self) -> str:
        return self._subscription.topic

    @property
    def handler(self) -> TaskHandler:
        return self._subscription.handler

    @property
    def lock_duration(self) -> int:
        return self._subscription.lock_duration

    @property
    def config(self) -> SubscriptionConfig:
        return self._subscription.config

    def unsubscribe(self) -> None:
        """Remove the subscription. Calling it again has no effect."""
        self._revoke(self._subscription.topic)

    def __repr__(self) -> str:
        return f"SubscriptionHandle(topic={self.topic!r}, lock_duration={self.lock_duration})"


class SubscriptionRegistry:
    """
    Registry of topic subscriptions, keyed by topic in insertion order.

    Mutated only from the event loop thread, like the poll cycle that
    reads it, so no locking is needed.
    """

    def __init__(
        self,
        default_lock_duration: int,
        on_revoke: Callable[[Subscription], None] | None = None,
    ):
        """
        Initialize the registry.

        Args:
            default_lock_duration: Lock duration (ms) for subscriptions
                that don't set one.
            on_revoke: Called with each subscription actually removed.
        """
        self._default_lock_duration = default_lock_duration
        self._subscriptions: dict[str, Subscription] = {}
        self._on_revoke = on_revoke

    def register(
        self,
        topic: str,
        handler: TaskHandler | None,
        config: SubscriptionConfig | Mapping[str, Any] | None = None,
    ) -> SubscriptionHandle:
        """
        Register a handler for a topic.

        Args:
            topic: Topic name, unique within the registry.
            handler: Callable invoked with a TaskContext per task.
            config: Optional per-topic fetch configuration.

        Returns:
            A handle exposing the subscription and unsubscribe().

        Raises:
            MissingHandlerError: If handler is not callable.
            AlreadyRegisteredError: If the topic is already registered.
        """
        if not callable(handler):
            raise MissingHandlerError(topic)
        if topic in self._subscriptions:
            raise AlreadyRegisteredError(topic)

        if config is None:
            config = SubscriptionConfig()
        elif not isinstance(config, SubscriptionConfig):
            config = SubscriptionConfig.model_validate(dict(config))

        subscription = Subscription(
            topic=topic,
            handler=handler,
            lock_duration=(
                config.lock_duration
                if config.lock_duration is not None
                else self._default_lock_duration
            ),
            config=config,
        )
        self._subscriptions[topic] = subscription

        logger.info(
            "Subscribed to topic",
            extra={"topic": topic, "lock_duration": subscription.lock_duration},
        )
        return SubscriptionHandle(subscription, self.revoke)

    def revoke(self, topic: str) -> None:
        """Remove a topic's subscription if present."""
        subscription = self._subscriptions.pop(topic, None)
        if subscription is None:
            return

        logger.info("Unsubscribed from topic", extra={"topic": topic})
        if self._on_revoke is not None:
            self._on_revoke(subscription)

    def resolve(self, topic: str) -> Subscription | None:
        """Get the subscription for a topic, or None."""
        return self._subscriptions.get(topic)

    def active_topics(self) -> list[str]:
        """Registered topic names in registration order."""
        return list(self._subscriptions)

    def fetch_topics(self) -> list[dict[str, Any]]:
        """Topic entries for a fetch-and-lock request."""
        return [subscription.to_fetch_topic() for subscription in self._subscriptions.values()]

    def as_dict(self) -> dict[str, Subscription]:
        """Snapshot of the registry."""
        return dict(self._subscriptions)

    def __contains__(self, topic: object) -> bool:
        return topic in self._subscriptions

    def __len__(self) -> int:
        return len(self._subscriptions)
