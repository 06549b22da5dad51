"""Per-route middleware composition.

A Handler is ``async def handler(request) -> Response``. A Middleware takes a
Handler and returns a new Handler that may:
- pass through to the wrapped handler,
- mutate request state before delegating,
- or short-circuit by returning its own Response.
"""

from collections.abc import Awaitable, Callable

from starlette.requests import Request

from bedrock.responses import Response

Handler = Callable[[Request], Awaitable[Response]]
Middleware = Callable[[Handler], Handler]


def chain(handler: Handler, *middlewares: Middleware) -> Handler:
    """Wrap handler so that middlewares run in the order given.

    ``chain(h, a, b)`` behaves as ``a(b(h))``: a sees the request first.
    """
    for middleware in reversed(middlewares):
        handler = middleware(handler)
    return handler
