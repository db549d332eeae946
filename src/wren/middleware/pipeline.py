"""Two-phase middleware pipeline.

One invocation moves through::

    ROUTE_RESOLVED -> INCOMING_RUNNING -> HANDLER_RUNNING | SHORT_CIRCUITED
                   -> OUTGOING_RUNNING -> FINALIZED

Incoming middleware run in registration order; after each one the
pipeline checks whether a response exists and, if so, stops. Outgoing
middleware always run, in registration order, over whatever response
was produced.
"""

import logging
from enum import Enum

from wren._internal.invoke import invoke_positional
from wren._internal.types import LogFn
from wren.errors import ResponseAlreadyPrepared
from wren.http.request import Request
from wren.http.response import Response, ResponseDescriptor
from wren.middleware.protocol import IncomingMiddleware, OutgoingMiddleware, Reject

logger = logging.getLogger("wren.server")


class PipelineState(Enum):
    """Where an invocation currently is in the pipeline."""

    ROUTE_RESOLVED = "route_resolved"
    INCOMING_RUNNING = "incoming_running"
    HANDLER_RUNNING = "handler_running"
    SHORT_CIRCUITED = "short_circuited"
    OUTGOING_RUNNING = "outgoing_running"
    FINALIZED = "finalized"


_TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    PipelineState.ROUTE_RESOLVED: frozenset({PipelineState.INCOMING_RUNNING}),
    PipelineState.INCOMING_RUNNING: frozenset(
        {PipelineState.HANDLER_RUNNING, PipelineState.SHORT_CIRCUITED}
    ),
    PipelineState.HANDLER_RUNNING: frozenset(
        {PipelineState.OUTGOING_RUNNING, PipelineState.FINALIZED}
    ),
    PipelineState.SHORT_CIRCUITED: frozenset({PipelineState.OUTGOING_RUNNING}),
    PipelineState.OUTGOING_RUNNING: frozenset({PipelineState.FINALIZED}),
    PipelineState.FINALIZED: frozenset(),
}


class Invocation:
    """State of one request travelling through the pipeline."""

    __slots__ = ("request", "response", "state")

    def __init__(self, request: Request, response: Response) -> None:
        self.request = request
        self.response = response
        self.state = PipelineState.ROUTE_RESOLVED

    def advance(self, state: PipelineState) -> None:
        if state not in _TRANSITIONS[self.state]:
            msg = f"Invalid pipeline transition: {self.state.value} -> {state.value}"
            raise RuntimeError(msg)
        logger.debug("%s %s: %s", self.request.method, self.request.path, state.value)
        self.state = state


class MiddlewarePipeline:
    """Frozen incoming and outgoing middleware chains."""

    __slots__ = ("incoming", "outgoing")

    def __init__(
        self,
        incoming: tuple[IncomingMiddleware, ...] = (),
        outgoing: tuple[OutgoingMiddleware, ...] = (),
    ) -> None:
        self.incoming = incoming
        self.outgoing = outgoing

    async def run_incoming(
        self,
        invocation: Invocation,
        log: LogFn,
        error: LogFn,
    ) -> bool:
        """Run incoming middleware. Returns True if one produced a response."""
        invocation.advance(PipelineState.INCOMING_RUNNING)
        response = invocation.response

        for middleware in self.incoming:
            result = await invoke_positional(
                middleware, invocation.request, response, log, error
            )
            if isinstance(result, Reject):
                if response.prepared:
                    name = getattr(middleware, "__name__", type(middleware).__name__)
                    msg = (
                        f"Incoming middleware {name!r} returned Reject after sending a "
                        "response. Either send a response or return Reject, not both."
                    )
                    raise ResponseAlreadyPrepared(msg)
                response.text(result.detail, result.status, result.content_type)
            if response.prepared:
                invocation.advance(PipelineState.SHORT_CIRCUITED)
                return True

        invocation.advance(PipelineState.HANDLER_RUNNING)
        return False

    async def run_outgoing(
        self,
        invocation: Invocation,
        descriptor: ResponseDescriptor,
        log: LogFn,
        error: LogFn,
    ) -> None:
        """Run every outgoing middleware over *descriptor*."""
        invocation.advance(PipelineState.OUTGOING_RUNNING)
        for middleware in self.outgoing:
            await invoke_positional(middleware, invocation.request, descriptor, log, error)
