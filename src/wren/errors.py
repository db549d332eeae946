"""Wren exception hierarchy.

Shared across the route table, registry, pipeline, and finalizer so every
module raises and catches the same types.

Registration errors (``ConfigurationError`` and subclasses) surface at
setup time. ``ResponseAlreadyPrepared`` and ``DependencyNotFound`` are
raised inside handlers and propagate to the host like any other handler
error.
"""


class WrenError(Exception):
    """Base for all wren-specific errors."""


class ConfigurationError(WrenError):
    """Raised when app configuration is invalid.

    Covers duplicate injection, mounting an empty router, invalid view
    engines, and out-of-range compression levels.
    """


class DuplicateDependency(ConfigurationError):
    """An instance with the same key is already injected."""


class DependencyNotFound(WrenError, LookupError):  # noqa: N818
    """No instance is registered under the requested key."""


class ResponseAlreadyPrepared(WrenError):  # noqa: N818
    """A second response was attempted within one invocation."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "A response has already been prepared. Cannot initiate another response. "
            "Did you call response methods like `response.text` or `response.json` "
            "multiple times in the same request handler?"
        )
