"""Shared type aliases used across wren modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Route handler, called with (request, response, log, error)
Handler: TypeAlias = Callable[..., Any]

# Host logging channel: context.log or context.error
LogFn: TypeAlias = Callable[[str], Any]
