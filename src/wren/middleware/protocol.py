"""Middleware protocols and the ``Reject`` result.

Incoming middleware run before the route handler::

    def incoming(request: Request, response: Response, log, error) -> Reject | None: ...

They may do nothing, inspect the request, send a response themselves
(which skips the rest of the incoming chain and the handler), or return
a ``Reject`` for an expected rejection such as a failed auth check.
Raising is reserved for real errors and aborts the invocation.

Outgoing middleware run after a response exists::

    def outgoing(request: Request, descriptor: ResponseDescriptor, log, error) -> None: ...

They may rewrite ``descriptor.body``, ``.headers`` and ``.status_code``
in place. Both kinds may be ``def`` or ``async def`` and may declare
fewer trailing parameters.
"""

from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Protocol, TypeAlias

from wren._internal.types import LogFn
from wren.http.request import Request
from wren.http.response import Response, ResponseDescriptor


@dataclass(frozen=True, slots=True)
class Reject:
    """An incoming middleware's decision to stop the request.

    The pipeline turns it into a text response and skips the handler::

        def require_token(request, response):
            if "authorization" not in request.headers:
                return Reject(401, "Missing token")
    """

    status: int = 403
    detail: str = "Forbidden"
    content_type: str = "text/plain"


MiddlewareResult: TypeAlias = Reject | None


class IncomingMiddleware(Protocol):
    """Pre-handler stage. May short-circuit."""

    def __call__(
        self,
        request: Request,
        response: Response,
        log: LogFn,
        error: LogFn,
    ) -> MiddlewareResult | Awaitable[MiddlewareResult]: ...


class OutgoingMiddleware(Protocol):
    """Post-handler response interceptor."""

    def __call__(
        self,
        request: Request,
        descriptor: ResponseDescriptor,
        log: LogFn,
        error: LogFn,
    ) -> None | Awaitable[None]: ...
