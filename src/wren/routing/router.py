"""Per-method route table and mountable sub-routers.

Resolution order for ``RouteTable.resolve(method, path)``, first hit wins:

1. Exact pattern string in the method's bucket.
2. Pattern scan of the method's bucket, in registration order.
3. Pattern scan of the ``ALL`` bucket, in registration order.
4. The ``*`` route of the method's bucket, then of ``ALL``.

``*`` is never part of a scan, so any concrete route beats it.
"""

import re
from collections.abc import Iterator
from typing import Any

from wren._internal.types import Handler
from wren.routing.matcher import WILDCARD, compile_pattern
from wren.routing.route import ALL, METHODS, Route, RouteMatch

_REPEATED_SLASHES = re.compile(r"/+")


def join_paths(base: str, route: str) -> str:
    """Join a mount base and a sub-route into one clean pattern.

    ``join_paths("/api/", "/:id/")`` -> ``"/api/:id"``;
    ``join_paths("/", "/")`` -> ``"/"``.
    """
    full = _REPEATED_SLASHES.sub("/", f"/{base}/{route}")
    if full.endswith("/") and len(full) > 1:
        full = full[:-1]
    return full


def _empty_buckets() -> dict[str, dict[str, Route]]:
    return {method: {} for method in (*METHODS, ALL)}


class RouteTable:
    """Ordered route buckets, one per HTTP method plus ``ALL``.

    Usage::

        table = RouteTable()
        table.add(Route("GET", "/user/:id", handler))
        table.compile()
        match = table.resolve("GET", "/user/42")   # RouteMatch(..., {"id": "42"})
    """

    __slots__ = ("_buckets", "_compiled")

    def __init__(self) -> None:
        self._buckets = _empty_buckets()
        self._compiled = False

    def add(self, route: Route) -> None:
        """Add a route. Re-adding a pattern replaces its handler in place."""
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)
        method = route.method.upper()
        bucket = self._buckets.setdefault(method, {})
        bucket[route.pattern] = route

    def compile(self) -> None:
        """Pre-compile every pattern and freeze the table."""
        for bucket in self._buckets.values():
            for pattern in bucket:
                if pattern != WILDCARD:
                    compile_pattern(pattern)
        self._compiled = True

    @property
    def routes(self) -> list[Route]:
        """All registered routes, bucket by bucket, in registration order."""
        return [route for bucket in self._buckets.values() for route in bucket.values()]

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._buckets.values())

    def resolve(self, method: str, path: str) -> RouteMatch | None:
        """Find the route for *method* and *path*, or ``None``."""
        bucket = self._buckets.get(method.upper(), {})

        route = bucket.get(path)
        if route is not None and path != WILDCARD:
            return RouteMatch(route, {})

        found = self._scan(bucket, path)
        if found is not None:
            return found

        found = self._scan(self._buckets[ALL], path)
        if found is not None:
            return found

        route = bucket.get(WILDCARD) or self._buckets[ALL].get(WILDCARD)
        if route is not None:
            return RouteMatch(route, {})
        return None

    @staticmethod
    def _scan(bucket: dict[str, Route], path: str) -> RouteMatch | None:
        for pattern, route in bucket.items():
            if pattern == WILDCARD:
                continue
            result = compile_pattern(pattern).match(path)
            if result.matched:
                return RouteMatch(route, result.params)
        return None


class Router:
    """A group of routes mounted under a base path with ``App.use()``.

    Usage::

        users = Router()

        @users.get("/:id")
        def show(request, response):
            response.json({"id": request.params["id"]})

        app.use("/users", users)
    """

    __slots__ = ("_routes",)

    def __init__(self) -> None:
        self._routes: list[Route] = []

    @property
    def empty(self) -> bool:
        return not self._routes

    def __iter__(self) -> Iterator[Route]:
        return iter(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def _register(
        self, method: str, pattern: str, handler: Handler | None
    ) -> Any:
        def decorator(func: Handler) -> Handler:
            self._routes.append(Route(method, pattern, func))
            return func

        if handler is None:
            return decorator
        decorator(handler)
        return self

    def get(self, pattern: str, handler: Handler | None = None) -> Any:
        """Register a ``GET`` route (decorator when *handler* is omitted)."""
        return self._register("GET", pattern, handler)

    def post(self, pattern: str, handler: Handler | None = None) -> Any:
        """Register a ``POST`` route."""
        return self._register("POST", pattern, handler)

    def put(self, pattern: str, handler: Handler | None = None) -> Any:
        """Register a ``PUT`` route."""
        return self._register("PUT", pattern, handler)

    def patch(self, pattern: str, handler: Handler | None = None) -> Any:
        """Register a ``PATCH`` route."""
        return self._register("PATCH", pattern, handler)

    def delete(self, pattern: str, handler: Handler | None = None) -> Any:
        """Register a ``DELETE`` route."""
        return self._register("DELETE", pattern, handler)

    def options(self, pattern: str, handler: Handler | None = None) -> Any:
        """Register an ``OPTIONS`` route."""
        return self._register("OPTIONS", pattern, handler)

    def all(self, pattern: str, handler: Handler | None = None) -> Any:
        """Register a route answering every method."""
        return self._register(ALL, pattern, handler)

    def mounted_at(self, base: str) -> list[Route]:
        """The router's routes with *base* joined onto each pattern."""
        return [
            Route(route.method, join_paths(base, route.pattern), route.handler)
            for route in self._routes
        ]
