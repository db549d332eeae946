"""Dispatcher — one host context in, one response descriptor out.

The only component that reads the host context directly. Converts the
host request to a typed ``Request``, resolves the route, runs incoming
middleware and the handler, and finalizes through the outgoing chain
and compression.
"""

import logging
from collections.abc import Mapping
from contextvars import Token

from wren._internal.invoke import invoke_positional
from wren.config import AppConfig
from wren.context import request_var
from wren.host import HostContext
from wren.http.request import Request
from wren.http.response import Response, ResponseDescriptor, ResponseSlot
from wren.injection import DependencyRegistry
from wren.middleware.pipeline import Invocation, MiddlewarePipeline, PipelineState
from wren.routing.router import RouteTable
from wren.server.finalizer import finalize, missing_response_result, not_found_result
from wren.server.logging import forward_logging
from wren.templating.engines import ViewEngine

logger = logging.getLogger("wren.server")


async def handle_invocation(
    context: HostContext,
    *,
    routes: RouteTable,
    pipeline: MiddlewarePipeline,
    dependencies: DependencyRegistry,
    engines: Mapping[str, ViewEngine],
    config: AppConfig,
) -> ResponseDescriptor:
    """Process a single invocation through the full pipeline.

    The dependency registry is cleared and the request context var reset
    before returning, whether or not the pipeline raised.
    """
    with forward_logging(context.log, context.error, enabled=config.forward_logs):
        request = Request.from_host(context.req, dependencies.snapshot())
        token: Token[Request] = request_var.set(request)
        try:
            return await _dispatch(
                context,
                request,
                routes=routes,
                pipeline=pipeline,
                engines=engines,
                config=config,
            )
        finally:
            dependencies.clear()
            request_var.reset(token)


async def _dispatch(
    context: HostContext,
    request: Request,
    *,
    routes: RouteTable,
    pipeline: MiddlewarePipeline,
    engines: Mapping[str, ViewEngine],
    config: AppConfig,
) -> ResponseDescriptor:
    log, error = context.log, context.error

    slot = ResponseSlot()
    response = Response(
        context.res,
        slot,
        engines=engines,
        base_directory=config.base_directory,
        views_directory=config.views_directory,
    )
    invocation = Invocation(request, response)

    match = routes.resolve(request.method, request.path)
    if match is not None:
        request.params.update(match.params)

    # Incoming middleware run even without a route so static files resolve.
    short_circuited = await pipeline.run_incoming(invocation, log, error)

    if not short_circuited:
        if match is None:
            invocation.advance(PipelineState.FINALIZED)
            logger.debug("No route for %s %s", request.method, request.path)
            return not_found_result(context, request)

        await invoke_positional(match.route.handler, request, response, log, error)

        if not slot.prepared:
            invocation.advance(PipelineState.FINALIZED)
            return missing_response_result(context, request)

    descriptor = slot.descriptor
    assert descriptor is not None

    return await finalize(
        invocation,
        descriptor,
        context,
        pipeline=pipeline,
        compression=config.compression,
        levels=config.compression_levels,
        log=log,
        error=error,
    )
