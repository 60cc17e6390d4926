"""
Client error types.

Usage errors are raised synchronously where the client is constructed or
configured. Engine errors come out of the HTTP gateway.
"""

from typing import Any


class ClientError(Exception):
    """Base class for all client errors."""


class MissingBaseUrlError(ClientError):
    """Raised when the client is constructed without a base URL."""

    def __init__(self) -> None:
        super().__init__("Couldn't instantiate Client, missing configuration parameter 'base_url'")


class AlreadyRegisteredError(ClientError):
    """Raised when a topic is subscribed to twice."""

    def __init__(self, topic: str) -> None:
        self.topic = topic
        super().__init__(f"Subscribing failed: topic '{topic}' is already registered")


class MissingHandlerError(ClientError):
    """Raised when a subscription is made without a callable handler."""

    def __init__(self, topic: str) -> None:
        self.topic = topic
        super().__init__(f"Subscribing failed: missing handler function for topic '{topic}'")


class WrongInterceptorError(ClientError):
    """Raised when the interceptors option is not a callable or a non-empty list of callables."""

    def __init__(self) -> None:
        super().__init__(
            "Interceptors should be a function or a non-empty list of functions"
        )


class WrongMiddlewaresError(ClientError):
    """Raised when the use option is not a callable or a non-empty list of callables."""

    def __init__(self) -> None:
        super().__init__(
            "Middleware(s) should be a function or a non-empty list of functions"
        )


class EventLoopRequiredError(ClientError):
    """Raised when polling is started outside a running event loop."""

    def __init__(self) -> None:
        super().__init__(
            "Polling needs a running event loop: construct the Client inside one "
            "or pass auto_poll=False and call start() later"
        )


class EngineError(ClientError):
    """
    Raised when a call to the engine fails.

    Covers both transport failures (status_code is None) and non-2xx
    responses from the engine.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: Any = None,
    ) -> None:
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)
