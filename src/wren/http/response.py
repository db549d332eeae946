"""Response descriptor and the handler-facing response builder.

``ResponseDescriptor`` is the single mutable record an invocation hands
back to the host. ``Response`` is what handlers and incoming middleware
receive: every ``text()`` / ``json()`` / ``render()`` call fills the
invocation's ``ResponseSlot``, and the slot refuses a second fill.
"""

from __future__ import annotations

import logging
import mimetypes
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeAlias

import anyio

from wren.errors import ConfigurationError, ResponseAlreadyPrepared

if TYPE_CHECKING:
    from wren.host import HostResponse
    from wren.templating.engines import ViewEngine

logger = logging.getLogger("wren.templating")

HeaderValue: TypeAlias = str | int | float | bool

_EXTENSION = re.compile(r"(?:\.([^./]+))?$")


@dataclass(slots=True)
class ResponseDescriptor:
    """The one response an invocation produces.

    ``body`` may be a string, bytes, or an awaitable that resolves to
    either (a pending render or file read). The finalizer awaits it
    before outgoing middleware run.
    """

    body: Any = ""
    status_code: int = 200
    headers: dict[str, HeaderValue] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """The host wire shape: ``{"body", "statusCode", "headers"}``."""
        return {
            "body": self.body,
            "statusCode": self.status_code,
            "headers": dict(self.headers),
        }


def find_header(headers: Mapping[str, Any], name: str) -> Any:
    """Case-insensitive header lookup on a plain mapping."""
    name_lower = name.lower()
    for key, value in headers.items():
        if key.lower() == name_lower:
            return value
    return None


def set_header(headers: dict[str, Any], name: str, value: Any) -> None:
    """Set *name*, replacing any existing header that differs only in case."""
    name_lower = name.lower()
    for key in [k for k in headers if k.lower() == name_lower]:
        del headers[key]
    headers[name] = value


class ResponseSlot:
    """Holds the invocation's descriptor. First fill wins; a second raises."""

    __slots__ = ("_descriptor",)

    def __init__(self) -> None:
        self._descriptor: ResponseDescriptor | None = None

    @property
    def prepared(self) -> bool:
        return self._descriptor is not None

    @property
    def descriptor(self) -> ResponseDescriptor | None:
        return self._descriptor

    def fill(self, descriptor: ResponseDescriptor) -> None:
        if self._descriptor is not None:
            raise ResponseAlreadyPrepared
        self._descriptor = descriptor


class Response:
    """Builds the invocation's response through the host's primitives.

    Each sending method (``empty``, ``json``, ``redirect``, ``text``,
    ``send``, ``binary``, ``render``) may be called once per invocation.
    Custom headers set through ``set_headers()`` are merged into whatever
    is sent.

    Usage::

        def handler(request, response):
            response.set_headers({"cache-control": "no-store"})
            response.json({"ok": True})
    """

    __slots__ = ("_base_directory", "_custom_headers", "_engines", "_host", "_slot", "_views")

    def __init__(
        self,
        host: HostResponse,
        slot: ResponseSlot,
        *,
        engines: Mapping[str, ViewEngine] | None = None,
        base_directory: str | Path = ".",
        views_directory: str = "",
    ) -> None:
        self._host = host
        self._slot = slot
        self._engines: Mapping[str, ViewEngine] = engines or {}
        self._base_directory = Path(base_directory)
        self._views = views_directory
        self._custom_headers: dict[str, HeaderValue] = {}

    @property
    def prepared(self) -> bool:
        """True once a response has been produced for this invocation."""
        return self._slot.prepared

    # -- Headers --

    def set_headers(self, headers: Mapping[str, Any]) -> None:
        """Add custom headers to the eventual response.

        Repeated calls merge; a repeated name, in any case, keeps the last value.
        Values must be ``str``, ``int``, ``float``, or ``bool``.
        """
        for name, value in headers.items():
            if not isinstance(value, (str, int, float, bool)):
                msg = (
                    "Custom headers only support values of type string, number or a boolean. "
                    f"Provided type for key '{name}': {type(value).__name__}."
                )
                raise TypeError(msg)
            set_header(self._custom_headers, name, value)

    def clear_headers(self) -> None:
        """Drop every header added through ``set_headers()``."""
        self._custom_headers = {}

    # -- Sending --

    def empty(self) -> None:
        """Send ``204 No Content``."""
        self._prepare(self._host.text("", 204, dict(self._custom_headers)))

    def json(self, data: Any, status: int = 200) -> None:
        """Send *data* as JSON."""
        self._prepare(self._host.json(data, status, dict(self._custom_headers)))

    def redirect(self, url: str) -> None:
        """Send a permanent (301) redirect to *url*."""
        self._prepare(self._host.redirect(url, 301, dict(self._custom_headers)))

    def text(self, content: Any, status: int = 200, content_type: str = "text/plain") -> None:
        """Send *content* with an explicit content type."""
        headers: dict[str, HeaderValue] = {"content-type": content_type}
        for name, value in self._custom_headers.items():
            set_header(headers, name, value)
        self._prepare(self._host.text(content, status, headers))

    send = text

    def binary(
        self,
        content_or_path: bytes | str,
        status: int = 200,
        content_type: str = "text/plain",
    ) -> None:
        """Send raw bytes, or the contents of a file.

        A ``str`` is a file path relative to the base (and views)
        directory; its content type is guessed from the extension and the
        file is read when the response is finalized.
        """
        if isinstance(content_or_path, str):
            guessed, _ = mimetypes.guess_type(content_or_path)
            set_header(self._custom_headers, "content-type", guessed or content_type)
            body: Any = anyio.Path(self._usable_path(content_or_path)).read_bytes()
        else:
            set_header(self._custom_headers, "content-type", content_type)
            body = content_or_path

        self._prepare(self._host.binary(body, status, dict(self._custom_headers)))

    def render(
        self,
        file_path: str,
        options: Mapping[str, Any] | None = None,
        status: int = 200,
    ) -> None:
        """Render a view through the engine registered for its extension.

        With a single engine the extension may be omitted. The rendered
        HTML is produced when the response is finalized.
        """
        engines = self._engines
        if not engines:
            msg = "No view engine found."
            raise ConfigurationError(msg)

        match = _EXTENSION.search(file_path)
        extension = match.group(1) if match else None
        if not extension:
            if len(engines) != 1:
                msg = (
                    "You seem to have set multiple view engines; "
                    "please use file paths with extension."
                )
                raise ConfigurationError(msg)
            extension = next(iter(engines))
            file_path = f"{file_path}.{extension}"

        engine = engines.get(extension)
        if engine is None:
            logger.error("Failed to render content: no view engine for %r", extension)
            self.text("Internal Server Error", 500, "text/plain")
            return

        render_options = dict(options or {})
        # Handlebars-style engines expect express-like settings.
        render_options.setdefault("settings", {})

        set_header(self._custom_headers, "content-type", "text/html")
        pending = engine.render(str(self._usable_path(file_path)), render_options)
        self._prepare(self._host.binary(pending, status, dict(self._custom_headers)))

    # -- Internal --

    def _usable_path(self, file_name: str) -> Path:
        if self._views:
            return self._base_directory / self._views / file_name
        return self._base_directory / file_name

    def _prepare(self, descriptor: ResponseDescriptor) -> None:
        if self._slot.prepared:
            # Close unawaited bodies so a rejected response leaves no warning.
            close = getattr(descriptor.body, "close", None)
            if callable(close):
                close()
            raise ResponseAlreadyPrepared
        self._slot.fill(descriptor)
