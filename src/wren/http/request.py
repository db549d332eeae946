"""Immutable HTTP request.

A frozen view over the data the host runtime supplied for this
invocation. Only ``params`` changes after creation: the dispatcher fills
it from the matched route pattern.
"""

from __future__ import annotations

import json as json_module
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, TypeAlias

from wren.host import EVENT_HEADER, TRIGGER_HEADER, HostRequest
from wren.http.headers import Headers
from wren.injection import DependencyRegistry

if TYPE_CHECKING:
    from wren.injection import KeyLike

logger = logging.getLogger("wren.server")

TriggerType: TypeAlias = Literal["event", "http", "schedule"]


def normalize_request_path(path: str) -> str:
    """Strip trailing slashes, keeping the root path ``/`` intact."""
    if path == "/" or not path:
        return "/"
    stripped = path.rstrip("/")
    return stripped or "/"


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    ``method`` is upper-case, ``path`` has its trailing slash removed
    (except for ``/``), and ``params`` holds the values captured by the
    matched route pattern (empty until a route matches).
    """

    method: str
    path: str
    headers: Headers
    query: Mapping[str, str] = field(default_factory=dict)
    query_string: str = ""
    body_raw: str = ""
    body_binary: bytes = b""
    scheme: str = "http"
    host: str = "localhost"
    port: int = 80
    url: str = ""
    params: dict[str, str] = field(default_factory=dict)

    # Private: the host's parsed body (dict for JSON, else text)
    _body: Any = field(default="", repr=False)

    # Private: dependency snapshot for this invocation
    _dependencies: DependencyRegistry = field(
        default_factory=DependencyRegistry, repr=False, compare=False
    )

    # -- Body access --

    @property
    def body(self) -> Any:
        """The host's parsed body: a dict for JSON, otherwise the text."""
        return self._body

    @property
    def body_text(self) -> str:
        """The body as text."""
        return self.body_raw

    @property
    def body_json(self) -> dict[str, Any]:
        """The body parsed as a JSON object.

        Returns ``{}`` when the body is empty or not valid JSON.
        """
        if isinstance(self._body, str) and self._body:
            try:
                parsed = json_module.loads(self._body)
            except ValueError as exc:
                logger.error("Failed to parse JSON body: %s", exc)
                return {}
            return parsed if isinstance(parsed, dict) else {}
        return self._body if isinstance(self._body, dict) else {}

    # -- Trigger metadata --

    @property
    def triggered_type(self) -> TriggerType | None:
        """How the function was triggered: ``http``, ``event`` or ``schedule``."""
        return self.headers.get(TRIGGER_HEADER)  # type: ignore[return-value]

    @property
    def _full_event_type(self) -> str | None:
        if self.triggered_type != "event":
            return None
        return self.headers.get(EVENT_HEADER)

    @property
    def events(self) -> dict[str, str] | None:
        """The event name parsed into resource/id pairs.

        ``databases.db1.collections.c1.documents.d1.create`` ->
        ``{"databases": "db1", "collections": "c1", "documents": "d1"}``
        """
        event = self._full_event_type
        if not event:
            return None
        parts = event.split(".")
        pairs: dict[str, str] = {}
        for index in range(0, len(parts), 2):
            key = parts[index]
            value = parts[index + 1] if index + 1 < len(parts) else ""
            if key and value:
                pairs[key] = value
        return pairs

    @property
    def event_type(self) -> str | None:
        """The last segment of the event name, e.g. ``create``."""
        event = self._full_event_type
        if not event:
            return None
        return event.split(".")[-1]

    # -- Dependencies --

    def retrieve(self, key: KeyLike, identifier: str = "") -> Any:
        """Return an injected instance. See ``DependencyRegistry.retrieve``."""
        return self._dependencies.retrieve(key, identifier)

    # -- Debugging --

    def dump(self) -> str:
        """A pretty JSON rendering of the request for logs."""
        return json_module.dumps(
            {
                "scheme": self.scheme,
                "host": self.host,
                "port": self.port,
                "method": self.method,
                "url": self.url,
                "path": self.path,
                "queryString": self.query_string,
                "query": dict(self.query),
                "headers": self.headers.to_dict(),
                "body": self.body_json,
                "params": self.params,
                "binary": bool(self.body_binary),
                "triggeredType": self.triggered_type,
                "events": self.events,
                "eventType": self.event_type,
            },
            indent=2,
            default=str,
        )

    # -- Factory --

    @classmethod
    def from_host(
        cls,
        req: HostRequest,
        dependencies: DependencyRegistry | None = None,
    ) -> Request:
        """Create a Request from the host's pre-parsed request data."""
        return cls(
            method=req.method.upper(),
            path=normalize_request_path(req.path),
            headers=Headers(req.headers),
            query=dict(req.query),
            query_string=req.query_string,
            body_raw=req.body_raw,
            body_binary=req.body_binary,
            scheme=req.scheme,
            host=req.host,
            port=req.port,
            url=req.url,
            _body=req.body,
            _dependencies=dependencies if dependencies is not None else DependencyRegistry(),
        )
