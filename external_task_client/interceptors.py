"""
Request interceptors for the engine gateway.

An interceptor is any callable taking the outgoing httpx.Request; it may be
a coroutine function. These are the common auth cases.
"""

import httpx


class BasicAuthInterceptor:
    """Sets HTTP basic auth on every engine request."""

    def __init__(self, username: str, password: str):
        if not username or not password:
            raise ValueError("BasicAuthInterceptor requires a username and a password")
        self._auth = httpx.BasicAuth(username, password)

    def __call__(self, request: httpx.Request) -> None:
        # BasicAuth sets the header before yielding the request
        next(self._auth.auth_flow(request))


class BearerTokenInterceptor:
    """Sets a bearer token on every engine request."""

    def __init__(self, token: str):
        if not token:
            raise ValueError("BearerTokenInterceptor requires a token")
        self._header = f"Bearer {token}"

    def __call__(self, request: httpx.Request) -> None:
        request.headers["Authorization"] = self._header
