"""Host runtime boundary.

The serverless runtime owns the invocation: it supplies the pre-parsed
request, primitive response constructors, and two logging channels.
Wren reads ``HostContext.req``, builds exactly one descriptor through
``HostContext.res``, and hands it back from ``App.attach()``.

``SimpleHostResponse`` is a reference implementation of the primitive
constructors for hosts (and tests) that have none of their own::

    context = HostContext(
        req=HostRequest(method="GET", path="/ping"),
        res=SimpleHostResponse(),
        log=print,
        error=print,
    )
    descriptor = await app.attach(context)
"""

import json as json_module
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from wren.http.response import ResponseDescriptor, set_header

# Trigger metadata headers set by Appwrite-style function runtimes.
TRIGGER_HEADER = "x-appwrite-trigger"
EVENT_HEADER = "x-appwrite-event"


@dataclass(frozen=True, slots=True)
class HostRequest:
    """Pre-parsed request data supplied by the host for one invocation."""

    method: str = "GET"
    path: str = "/"
    headers: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, str] = field(default_factory=dict)
    query_string: str = ""
    body_raw: str = ""
    # Parsed body: a dict when the host decoded JSON, else the raw text.
    body: Any = ""
    body_binary: bytes = b""
    scheme: str = "http"
    host: str = "localhost"
    port: int = 80
    url: str = ""


class HostResponse(Protocol):
    """Primitive response constructors exposed by the host runtime."""

    def text(
        self, body: Any, status_code: int = 200, headers: Mapping[str, Any] | None = None
    ) -> ResponseDescriptor: ...

    def json(
        self, data: Any, status_code: int = 200, headers: Mapping[str, Any] | None = None
    ) -> ResponseDescriptor: ...

    def binary(
        self, body: Any, status_code: int = 200, headers: Mapping[str, Any] | None = None
    ) -> ResponseDescriptor: ...

    def redirect(
        self, url: str, status_code: int = 301, headers: Mapping[str, Any] | None = None
    ) -> ResponseDescriptor: ...

    def empty(self) -> ResponseDescriptor: ...


def _with_defaults(
    defaults: dict[str, Any], headers: Mapping[str, Any] | None
) -> dict[str, Any]:
    """*defaults* overlaid with *headers*, names compared case-insensitively."""
    for name, value in (headers or {}).items():
        set_header(defaults, name, value)
    return defaults


class SimpleHostResponse:
    """Reference ``HostResponse`` producing plain ``ResponseDescriptor`` records."""

    __slots__ = ()

    def text(
        self, body: Any, status_code: int = 200, headers: Mapping[str, Any] | None = None
    ) -> ResponseDescriptor:
        merged = _with_defaults({"content-type": "text/plain"}, headers)
        return ResponseDescriptor(body=body, status_code=status_code, headers=merged)

    def json(
        self, data: Any, status_code: int = 200, headers: Mapping[str, Any] | None = None
    ) -> ResponseDescriptor:
        merged = _with_defaults({"content-type": "application/json"}, headers)
        return ResponseDescriptor(
            body=json_module.dumps(data), status_code=status_code, headers=merged
        )

    def binary(
        self, body: Any, status_code: int = 200, headers: Mapping[str, Any] | None = None
    ) -> ResponseDescriptor:
        merged = _with_defaults({"content-type": "application/octet-stream"}, headers)
        return ResponseDescriptor(body=body, status_code=status_code, headers=merged)

    def redirect(
        self, url: str, status_code: int = 301, headers: Mapping[str, Any] | None = None
    ) -> ResponseDescriptor:
        merged: dict[str, Any] = dict(headers or {})
        set_header(merged, "location", url)
        return ResponseDescriptor(body="", status_code=status_code, headers=merged)

    def empty(self) -> ResponseDescriptor:
        return ResponseDescriptor(body="", status_code=204, headers={})


def _discard(message: str) -> None:  # noqa: ARG001
    return None


@dataclass(frozen=True, slots=True)
class HostContext:
    """Everything the host threads into a single invocation."""

    req: HostRequest
    res: HostResponse = field(default_factory=SimpleHostResponse)
    log: Callable[[str], Any] = _discard
    error: Callable[[str], Any] = _discard
