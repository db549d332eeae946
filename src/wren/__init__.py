"""Wren — request dispatch for single-invocation serverless functions.

One host context in, exactly one response descriptor out: routing with
``:param`` patterns, incoming/outgoing middleware, dependency injection,
view engines, static files, and response compression.

Basic usage::

    from wren import App

    app = App()

    @app.get("/ping")
    def ping(request, response):
        response.text("pong")

    async def main(context):
        return (await app.attach(context)).to_dict()

Templates (``pip install wren[kida]``)::

    from wren import kida_engine
    app.views("views").engine("html", kida_engine())
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "CompressionLevels",
    "ConfigurationError",
    "DependencyKey",
    "DependencyNotFound",
    "DuplicateDependency",
    "EngineStyle",
    "HostContext",
    "HostRequest",
    "Reject",
    "Request",
    "Response",
    "ResponseAlreadyPrepared",
    "ResponseDescriptor",
    "Router",
    "SimpleHostResponse",
    "ViewEngine",
    "WrenError",
    "awaitable_engine",
    "callback_engine",
    "get_request",
    "kida_engine",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import wren`` fast while providing a clean top-level API.
    """
    if name == "App":
        from wren.app import App

        return App

    if name == "AppConfig":
        from wren.config import AppConfig

        return AppConfig

    if name == "Request":
        from wren.http.request import Request

        return Request

    if name in ("Response", "ResponseDescriptor"):
        from wren.http import response as _resp

        return getattr(_resp, name)

    if name in ("HostContext", "HostRequest", "SimpleHostResponse"):
        from wren import host as _host

        return getattr(_host, name)

    if name == "Router":
        from wren.routing.router import Router

        return Router

    if name == "Reject":
        from wren.middleware.protocol import Reject

        return Reject

    if name == "DependencyKey":
        from wren.injection import DependencyKey

        return DependencyKey

    if name == "CompressionLevels":
        from wren.server.compression import CompressionLevels

        return CompressionLevels

    if name in ("EngineStyle", "ViewEngine", "awaitable_engine", "callback_engine", "kida_engine"):
        from wren.templating import engines as _engines

        return getattr(_engines, name)

    if name == "get_request":
        from wren.context import get_request

        return get_request

    if name in (
        "ConfigurationError",
        "DependencyNotFound",
        "DuplicateDependency",
        "ResponseAlreadyPrepared",
        "WrenError",
    ):
        from wren import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
