"""View engine adapters.

Wren does not render templates itself. It calls a uniform
``render(file_path, options) -> str`` contract and leaves the work to an
engine registered per file extension. Two calling conventions exist and
the caller picks one explicitly at registration time:

``EngineStyle.CALLBACK``
    ``fn(file_path, options, callback)`` where ``callback(err, content)``
    is invoked once (express-style engines). Runs in a worker thread.

``EngineStyle.AWAITABLE``
    ``fn(file_path, options)`` returning ``str`` or an awaitable of it.

``kida_engine()`` adapts the kida template engine (``pip install
wren[kida]``) to the awaitable convention.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import anyio

from wren._internal.invoke import invoke
from wren.errors import ConfigurationError


class EngineStyle(Enum):
    """Calling convention of a view engine function."""

    CALLBACK = "callback"
    AWAITABLE = "awaitable"


@dataclass(frozen=True, slots=True)
class ViewEngine:
    """A render function tagged with its calling convention."""

    fn: Callable[..., Any]
    style: EngineStyle = EngineStyle.AWAITABLE

    async def render(self, file_path: str, options: dict[str, Any]) -> str:
        """Render *file_path* with *options* and return the content."""
        if self.style is EngineStyle.CALLBACK:
            return await anyio.to_thread.run_sync(_run_callback, self.fn, file_path, options)
        return await invoke(self.fn, file_path, options)


def _run_callback(fn: Callable[..., Any], file_path: str, options: dict[str, Any]) -> str:
    """Drive an express-style engine and wait for its callback."""
    done = threading.Event()
    outcome: dict[str, Any] = {}

    def callback(err: Any = None, content: Any = None) -> None:
        if "done" in outcome:
            return
        outcome["done"] = True
        outcome["error"] = err
        outcome["content"] = content
        done.set()

    fn(file_path, options, callback)
    done.wait()

    err = outcome["error"]
    if err is not None:
        if isinstance(err, BaseException):
            raise err
        raise RuntimeError(str(err))
    return outcome["content"]


def callback_engine(fn: Callable[..., Any]) -> ViewEngine:
    """Wrap an express-style ``fn(path, options, callback)`` engine."""
    return ViewEngine(fn, EngineStyle.CALLBACK)


def awaitable_engine(fn: Callable[..., Any]) -> ViewEngine:
    """Wrap an ``fn(path, options) -> str | Awaitable[str]`` engine."""
    return ViewEngine(fn, EngineStyle.AWAITABLE)


def coerce_engine(engine: Any, style: EngineStyle | str | None = None) -> ViewEngine:
    """Turn a registration argument into a ``ViewEngine``.

    A ``ViewEngine`` passes through unchanged. A plain callable uses
    *style*, defaulting to ``EngineStyle.AWAITABLE``. Anything else is a
    ``ConfigurationError``.
    """
    if isinstance(engine, ViewEngine):
        if style is not None and EngineStyle(style) is not engine.style:
            msg = f"Engine style conflict: engine is {engine.style.value}, got {style!r}."
            raise ConfigurationError(msg)
        return engine
    if not callable(engine):
        msg = "Invalid engine: it must be a ViewEngine or a callable render function."
        raise ConfigurationError(msg)
    try:
        resolved = EngineStyle(style) if style is not None else EngineStyle.AWAITABLE
    except ValueError:
        msg = f"Invalid engine style: {style!r}."
        raise ConfigurationError(msg) from None
    return ViewEngine(engine, resolved)


def normalize_extensions(ext: str | Iterable[str]) -> list[str]:
    """Validate and normalize extension(s) given to ``App.engine()``.

    A leading dot is dropped: ``".html"`` and ``"html"`` register the same
    engine.
    """
    extensions = [ext] if isinstance(ext, str) else list(ext)
    if not extensions or not all(isinstance(e, str) and e.strip() for e in extensions):
        msg = "The extension(s) must be non-empty string(s)."
        raise ConfigurationError(msg)
    return [e.strip().lstrip(".") for e in extensions]


class KidaRenderer:
    """Awaitable-style renderer backed by kida.

    One kida ``Environment`` is created per template directory so
    ``{% include %}`` and ``{% extends %}`` resolve next to the rendered
    file. The ``settings`` key added for express-style engines is dropped
    before rendering.
    """

    __slots__ = ("_autoescape", "_environments", "_filters", "_globals", "_lock")

    def __init__(
        self,
        *,
        autoescape: bool = True,
        filters: Mapping[str, Callable[..., Any]] | None = None,
        globals_: Mapping[str, Any] | None = None,
    ) -> None:
        self._autoescape = autoescape
        self._filters = dict(filters or {})
        self._globals = dict(globals_ or {})
        self._environments: dict[Path, Any] = {}
        self._lock = threading.Lock()

    def _environment(self, directory: Path) -> Any:
        with self._lock:
            env = self._environments.get(directory)
            if env is None:
                from kida import Environment, FileSystemLoader

                env = Environment(
                    loader=FileSystemLoader(str(directory)),
                    autoescape=self._autoescape,
                )
                if self._filters:
                    env.update_filters(self._filters)
                for name, value in self._globals.items():
                    env.add_global(name, value)
                self._environments[directory] = env
            return env

    def __call__(self, file_path: str, options: dict[str, Any]) -> str:
        path = Path(file_path)
        env = self._environment(path.parent)
        context = {k: v for k, v in options.items() if k != "settings"}
        return env.get_template(path.name).render(context)


def kida_engine(
    *,
    autoescape: bool = True,
    filters: Mapping[str, Callable[..., Any]] | None = None,
    globals_: Mapping[str, Any] | None = None,
) -> ViewEngine:
    """Build a view engine that renders templates with kida.

    Usage::

        app.views("views").engine("html", kida_engine())

        def index(request, response):
            response.render("index", {"title": "Home"})

    Raises ``ConfigurationError`` when kida is not installed.
    """
    try:
        import kida  # noqa: F401
    except ImportError:
        msg = "kida_engine() requires kida. Install it with: pip install wren[kida]"
        raise ConfigurationError(msg) from None

    renderer = KidaRenderer(autoescape=autoescape, filters=filters, globals_=globals_)
    return awaitable_engine(renderer)
