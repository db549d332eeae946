"""Invoke helpers — call sync or async handlers uniformly.

Wren handlers and middleware can be ``def`` or ``async def`` and may
declare fewer positional parameters than the dispatcher offers. This
module keeps both checks in one place.

Usage::

    from wren._internal.invoke import invoke, invoke_positional

    result = await invoke(handler, *args, **kwargs)
    result = await invoke_positional(handler, request, response, log, error)
"""

import inspect
from functools import lru_cache
from typing import Any


async def invoke(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Call a handler and await the result if it's awaitable."""
    result = handler(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


@lru_cache(maxsize=512)
def _positional_arity(handler: Any) -> int | None:
    """Number of positional args *handler* accepts, ``None`` for ``*args``."""
    try:
        sig = inspect.signature(handler)
    except (TypeError, ValueError):
        return None

    count = 0
    for param in sig.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return None
        if param.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            count += 1
    return count


async def invoke_positional(handler: Any, *args: Any) -> Any:
    """Call *handler* with as many leading positional *args* as it declares.

    Lets users write ``def ping(request, response)`` while the dispatcher
    always offers ``(request, response, log, error)``::

        def ping(request, response):
            response.text("pong")

        async def audit(request, response, log):
            log(f"hit {request.path}")
    """
    try:
        arity = _positional_arity(handler)
    except TypeError:
        # Unhashable callable objects skip the cache.
        arity = _positional_arity.__wrapped__(handler)
    if arity is not None:
        args = args[:arity]
    return await invoke(handler, *args)
