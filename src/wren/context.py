"""Request-scoped context via ContextVar.

Provides ``request_var``, the current ``Request`` for this task. It is
set by the dispatcher before the pipeline runs and reset after the
invocation, error path included. Accessing it outside an invocation
raises ``LookupError``.
"""

from contextvars import ContextVar

from wren.http.request import Request

request_var: ContextVar[Request] = ContextVar("wren_request")
"""The current request. Set by the dispatcher before the pipeline runs."""


def get_request() -> Request:
    """Return the current request.

    Raises ``LookupError`` if called outside a request context.
    """
    return request_var.get()
