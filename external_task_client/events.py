"""
Client lifecycle events.

Listeners are plain callables registered per event name. A failing
listener is logged and never interrupts the emitter.
"""

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class EventEmitter:
    """Minimal synchronous event emitter."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def on(self, event: str, listener: Listener) -> Listener:
        """
        Register a listener for an event.

        Returns the listener so this can be used as a decorator
        factory target.
        """
        self._listeners[event].append(listener)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        """Remove a listener; unknown listeners are ignored."""
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def listeners(self, event: str) -> list[Listener]:
        """Listeners registered for an event."""
        return list(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> None:
        """Call every listener of an event with the given arguments."""
        for listener in self.listeners(event):
            try:
                listener(*args)
            except Exception:
                logger.exception("Event listener failed", extra={"event": event})
