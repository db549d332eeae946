"""Response finalization — turn the invocation's slot into one descriptor.

Awaits pending bodies (renders, file reads), runs the outgoing chain over
the result, then compresses. Failures in any of those steps are logged
and replaced by a fixed ``500 Internal Server Error`` text descriptor.

Synthetic descriptors (route not found, handler sent nothing, finalize
failure) skip outgoing middleware and compression.
"""

import inspect
import logging

from wren._internal.types import LogFn
from wren.http.request import Request
from wren.http.response import ResponseDescriptor
from wren.host import HostContext
from wren.middleware.pipeline import Invocation, MiddlewarePipeline, PipelineState
from wren.server.compression import CompressionLevels, CompressionPolicy, compress_response

logger = logging.getLogger("wren.server")

ROUTE_NOT_FOUND_STATUS = 404
INTERNAL_ERROR_STATUS = 500
INTERNAL_ERROR_MESSAGE = "Internal Server Error"


def error_result(context: HostContext, message: str, status: int) -> ResponseDescriptor:
    """A plain-text error descriptor, also reported on the host error channel."""
    context.error(message)
    return context.res.text(message, status, {"content-type": "text/plain"})


def not_found_result(context: HostContext, request: Request) -> ResponseDescriptor:
    """``Cannot GET '/nope'.``"""
    message = f"Cannot {request.method} '{request.path}'."
    return error_result(context, message, ROUTE_NOT_FOUND_STATUS)


def missing_response_result(context: HostContext, request: Request) -> ResponseDescriptor:
    """The handler returned without sending anything."""
    message = (
        f"Invalid return from route {request.path}. "
        "Use 'response.empty()' if no response is expected."
    )
    return error_result(context, message, INTERNAL_ERROR_STATUS)


async def finalize(
    invocation: Invocation,
    descriptor: ResponseDescriptor,
    context: HostContext,
    *,
    pipeline: MiddlewarePipeline,
    compression: CompressionPolicy,
    levels: CompressionLevels,
    log: LogFn,
    error: LogFn,
) -> ResponseDescriptor:
    """Resolve the body, run outgoing middleware, compress.

    Returns *descriptor* (mutated in place) or a 500 text descriptor when
    any step raises.
    """
    try:
        if inspect.isawaitable(descriptor.body):
            descriptor.body = await descriptor.body

        await pipeline.run_outgoing(invocation, descriptor, log, error)

        await compress_response(
            descriptor,
            invocation.request.headers.get("accept-encoding"),
            compression,
            levels,
            log=log,
            error=error,
        )
        invocation.advance(PipelineState.FINALIZED)
    except Exception:
        logger.exception(
            "Failed to finalize response: %s %s",
            invocation.request.method,
            invocation.request.path,
        )
        invocation.state = PipelineState.FINALIZED
        descriptor = error_result(context, INTERNAL_ERROR_MESSAGE, INTERNAL_ERROR_STATUS)

    return descriptor
