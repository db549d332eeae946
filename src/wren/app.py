"""Wren application class.

Mutable during setup (routes, routers, middleware, engines, settings).
Frozen on the first ``attach()``: the route table is compiled and the
middleware chains and engines are captured. Dependencies stay injectable
afterwards; the registry is cleared at the end of every invocation.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from wren._internal.types import Handler
from wren.config import AppConfig
from wren.errors import ConfigurationError
from wren.host import HostContext
from wren.http.response import ResponseDescriptor
from wren.injection import DependencyRegistry, KeyLike
from wren.middleware.builtin import PoweredBy
from wren.middleware.pipeline import MiddlewarePipeline
from wren.middleware.protocol import IncomingMiddleware, OutgoingMiddleware
from wren.middleware.static import ExcludePattern, StaticFiles
from wren.routing.route import ALL, METHODS, Route
from wren.routing.router import RouteTable, Router
from wren.server.compression import CompressionLevels, CompressionPolicy
from wren.server.handler import handle_invocation
from wren.templating.engines import (
    EngineStyle,
    ViewEngine,
    coerce_engine,
    normalize_extensions,
)


@dataclass(frozen=True, slots=True)
class _PendingStatic:
    """A static directory waiting for the final config at freeze time."""

    directory: str | Path
    exclude: tuple[ExcludePattern, ...]


class App:
    """The wren application.

    Usage::

        app = App()

        @app.get("/ping")
        def ping(request, response):
            response.text("pong")

        async def main(context):
            return (await app.attach(context)).to_dict()

    Every registration method returns the app (or, when used as a
    decorator, the decorated function) so calls chain::

        app.views("views").engine("html", kida_engine()).compression(False)

    Thread safety:
        Setup is single-threaded. The freeze transition uses a Lock +
        double-check so exactly one caller compiles the app even when
        several invocations arrive at once.
    """

    __slots__ = (
        "_dependencies",
        "_engines",
        "_freeze_lock",
        "_frozen",
        "_incoming",
        "_outgoing",
        "_pending_routes",
        # Compiled state (populated by _freeze)
        "_frozen_engines",
        "_pipeline",
        "_routes",
        "config",
    )

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config: AppConfig = config or AppConfig()
        self._pending_routes: list[Route] = []
        self._incoming: list[IncomingMiddleware | _PendingStatic] = []
        self._outgoing: list[OutgoingMiddleware] = []
        self._engines: dict[str, ViewEngine] = {}
        self._dependencies = DependencyRegistry()
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

        # Compiled state, set during _freeze()
        self._routes: RouteTable | None = None
        self._pipeline: MiddlewarePipeline | None = None
        self._frozen_engines: Mapping[str, ViewEngine] = {}

    # -- Route registration --

    def _register(self, method: str, pattern: str, handler: Handler | None) -> Any:
        def decorator(func: Handler) -> Handler:
            self._check_not_frozen()
            self._pending_routes.append(Route(method, pattern, func))
            return func

        if handler is None:
            return decorator
        decorator(handler)
        return self

    def get(self, pattern: str, handler: Handler | None = None) -> Any:
        """Register a ``GET`` route.

        Used as ``@app.get("/path")`` or ``app.get("/path", handler)``;
        the second form returns the app for chaining.
        """
        return self._register("GET", pattern, handler)

    def post(self, pattern: str, handler: Handler | None = None) -> Any:
        return self._register("POST", pattern, handler)

    def put(self, pattern: str, handler: Handler | None = None) -> Any:
        return self._register("PUT", pattern, handler)

    def patch(self, pattern: str, handler: Handler | None = None) -> Any:
        return self._register("PATCH", pattern, handler)

    def delete(self, pattern: str, handler: Handler | None = None) -> Any:
        return self._register("DELETE", pattern, handler)

    def options(self, pattern: str, handler: Handler | None = None) -> Any:
        return self._register("OPTIONS", pattern, handler)

    def all(self, pattern: str, handler: Handler | None = None) -> Any:
        """Register a route answering every method.

        Tried after the method's own routes; see ``RouteTable.resolve``.
        """
        return self._register(ALL, pattern, handler)

    def route(
        self,
        pattern: str,
        *,
        methods: Iterable[str] | None = None,
    ) -> Callable[[Handler], Handler]:
        """Register one handler for several methods via decorator.

        Args:
            pattern: URL pattern. Use ``:name`` for parameters and ``*``
                for the catch-all route.
            methods: HTTP methods. Defaults to ``["GET"]``.
        """
        resolved = [m.upper() for m in (methods or ["GET"])]
        for method in resolved:
            if method not in METHODS and method != ALL:
                msg = f"Unsupported HTTP method: {method!r}"
                raise ConfigurationError(msg)

        def decorator(func: Handler) -> Handler:
            self._check_not_frozen()
            for method in resolved:
                self._pending_routes.append(Route(method, pattern, func))
            return func

        return decorator

    def use(self, base: str, router: Router) -> App:
        """Mount *router* with every pattern prefixed by *base*.

        Raises ``ConfigurationError`` if the router has no routes.
        """
        self._check_not_frozen()
        if router.empty:
            msg = f"No routes defined for path '{base}'."
            raise ConfigurationError(msg)
        self._pending_routes.extend(router.mounted_at(base))
        return self

    # -- Middleware --

    def middleware(
        self,
        fn: IncomingMiddleware | None = None,
        *,
        incoming: IncomingMiddleware | None = None,
        outgoing: OutgoingMiddleware | None = None,
    ) -> Any:
        """Register middleware.

        ``app.middleware(fn)`` and ``@app.middleware`` add an incoming
        middleware; ``app.middleware(incoming=..., outgoing=...)`` adds
        either or both halves.
        """
        self._check_not_frozen()
        if fn is not None:
            self._incoming.append(fn)
            return fn
        if incoming is None and outgoing is None:
            msg = "middleware() needs an incoming or outgoing callable."
            raise ConfigurationError(msg)
        if incoming is not None:
            self._incoming.append(incoming)
        if outgoing is not None:
            self._outgoing.append(outgoing)
        return self

    # -- Dependencies --

    def inject(
        self,
        instance: object,
        identifier: str = "",
        *,
        key: KeyLike | None = None,
    ) -> App:
        """Share *instance* with handlers through ``request.retrieve()``.

        Injected instances live until the end of the next invocation.
        """
        self._dependencies.inject(instance, identifier, key=key)
        return self

    # -- Views --

    def views(self, directory: str) -> App:
        """Directory, relative to the base directory, holding view files."""
        self._check_not_frozen()
        self.config = replace(self.config, views_directory=directory)
        return self

    def engine(
        self,
        ext: str | Iterable[str],
        engine: ViewEngine | Callable[..., Any],
        *,
        style: EngineStyle | str | None = None,
    ) -> App:
        """Register a view engine for one or more file extensions."""
        self._check_not_frozen()
        extensions = normalize_extensions(ext)
        view_engine = coerce_engine(engine, style)
        for extension in extensions:
            self._engines[extension] = view_engine
        return self

    # -- Static files --

    def static(self, directory: str | Path, exclude: Iterable[ExcludePattern] = ()) -> App:
        """Serve files from *directory* (relative to the base directory).

        Registered as an incoming middleware at this point of the chain.
        Raises ``ConfigurationError`` if the directory does not exist.
        """
        self._check_not_frozen()
        resolved = Path(self.config.base_directory) / directory
        if not resolved.is_dir():
            msg = f"Static directory '{resolved}' does not exist."
            raise ConfigurationError(msg)
        self._incoming.append(_PendingStatic(directory, tuple(exclude)))
        return self

    def clean_urls(self, extensions: Iterable[str]) -> App:
        """Serve ``/about`` from ``about.<ext>`` for each extension."""
        self._check_not_frozen()
        cleaned = tuple(ext.lstrip(".") for ext in extensions)
        self.config = replace(self.config, clean_url_extensions=cleaned)
        return self

    def serve_index(self, enabled: bool) -> App:
        """Serve ``<dir>/index.html`` for a bare directory path."""
        self._check_not_frozen()
        self.config = replace(self.config, index_as_default=enabled)
        return self

    # -- Response settings --

    def powered_by_header(self, enabled: bool) -> App:
        self._check_not_frozen()
        self.config = replace(self.config, powered_by=enabled)
        return self

    def compression(
        self,
        value: CompressionPolicy = True,
        levels: CompressionLevels | Mapping[str, int] | None = None,
    ) -> App:
        """Enable (``True``), disable (``False``), or customize compression.

        *levels* applies to the built-in encodings and must name all of
        ``br``, ``gzip`` and ``deflate``.
        """
        self._check_not_frozen()
        if levels is None:
            resolved = self.config.compression_levels
        elif isinstance(levels, CompressionLevels):
            resolved = levels
        else:
            resolved = CompressionLevels.from_mapping(levels)
        self.config = replace(self.config, compression=value, compression_levels=resolved)
        return self

    # -- Host interface --

    async def attach(self, context: HostContext) -> ResponseDescriptor:
        """Handle one invocation and return its response descriptor."""
        try:
            self._ensure_frozen()
        except Exception:
            # Injected instances belong to this invocation even when it never runs.
            self._dependencies.clear()
            raise

        assert self._routes is not None
        assert self._pipeline is not None

        return await handle_invocation(
            context,
            routes=self._routes,
            pipeline=self._pipeline,
            dependencies=self._dependencies,
            engines=self._frozen_engines,
            config=self.config,
        )

    async def __call__(self, context: HostContext) -> ResponseDescriptor:
        return await self.attach(context)

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the app into its frozen runtime state.

        MUST only be called while holding _freeze_lock.
        """
        # 1. Compile route table
        routes = RouteTable()
        for route in self._pending_routes:
            routes.add(route)
        routes.compile()
        self._routes = routes

        # 2. Capture middleware as immutable tuples. Static directories are
        #    walked now, with the final clean-URL and index settings.
        incoming: list[IncomingMiddleware] = []
        for middleware in self._incoming:
            if isinstance(middleware, _PendingStatic):
                incoming.append(
                    StaticFiles(
                        Path(self.config.base_directory) / middleware.directory,
                        exclude=middleware.exclude,
                        clean_url_extensions=self.config.clean_url_extensions,
                        index_as_default=self.config.index_as_default,
                    )
                )
            else:
                incoming.append(middleware)

        #    X-Powered-By runs first in the outgoing chain.
        outgoing = list(self._outgoing)
        if self.config.powered_by:
            outgoing.insert(0, PoweredBy(self.config.powered_by_value))

        self._pipeline = MiddlewarePipeline(tuple(incoming), tuple(outgoing))

        # 3. Freeze engines
        self._frozen_engines = dict(self._engines)

        self._frozen = True

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started handling requests. "
                "Register routes, middleware, and engines before the first attach()."
            )
            raise RuntimeError(msg)
