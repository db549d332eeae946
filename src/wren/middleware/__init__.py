"""Middleware — plain callables, no inheritance required.

Incoming middleware run before the route handler and may short-circuit;
outgoing middleware rewrite the response afterwards. See
``wren.middleware.protocol`` for the call shapes.

Built-in middleware:
    PoweredBy -- Stamps ``X-Powered-By`` on every response
    StaticFiles -- Serve files from a directory
"""

from wren.middleware.builtin import PoweredBy
from wren.middleware.pipeline import Invocation, MiddlewarePipeline, PipelineState
from wren.middleware.protocol import IncomingMiddleware, OutgoingMiddleware, Reject
from wren.middleware.static import StaticFiles

__all__ = [
    "IncomingMiddleware",
    "Invocation",
    "MiddlewarePipeline",
    "OutgoingMiddleware",
    "PipelineState",
    "PoweredBy",
    "Reject",
    "StaticFiles",
]
