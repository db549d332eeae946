"""Static file serving middleware.

Serves files from a directory as an incoming middleware. The directory
is walked once when the app freezes; requests are answered from that
mapping, so files added afterwards are not served.

Falls through (sends nothing) for non-GET requests and unknown paths,
letting the route handler run.
"""

import logging
import mimetypes
import posixpath
import re
from collections.abc import Iterable
from pathlib import Path
from typing import TypeAlias

from wren.http.request import Request
from wren.http.response import Response

logger = logging.getLogger("wren.static")

DEFAULT_CONTENT_TYPE = "text/plain"

ExcludePattern: TypeAlias = str | re.Pattern[str]


def _excluded(name: str, exclude: Iterable[ExcludePattern]) -> bool:
    for pattern in exclude:
        if isinstance(pattern, str):
            if name == pattern:
                return True
        elif pattern.search(name):
            return True
    return False


def build_file_mapping(
    directory: str | Path,
    exclude: Iterable[ExcludePattern] = (),
) -> dict[str, Path]:
    """Map URL paths (``/css/site.css``) to files under *directory*.

    Entries whose name equals an excluded string, or matches an excluded
    regex, are skipped. An excluded directory is skipped with its whole
    subtree.
    """
    root = Path(directory).resolve()
    exclude = tuple(exclude)
    mapping: dict[str, Path] = {}
    stack = [root]

    while stack:
        current = stack.pop()
        for entry in sorted(current.iterdir()):
            if _excluded(entry.name, exclude):
                continue
            if entry.is_dir():
                stack.append(entry)
            elif entry.is_file():
                mapping["/" + entry.relative_to(root).as_posix()] = entry

    return mapping


class StaticFiles:
    """Incoming middleware that serves files from a directory.

    Lookup for a ``GET`` request path, first hit wins:

    1. the path itself (``/about.html``);
    2. the path plus each clean-URL extension (``/about`` -> ``/about.html``);
    3. ``index.html`` inside the path when index fallback is enabled
       (``/docs`` -> ``/docs/index.html``).

    Text files (``text/*`` and ``application/json``) are sent as text,
    everything else as binary.

    Usage::

        app.static("public", exclude=[".env", re.compile(r"\\.map$")])
        app.clean_urls(["html"]).serve_index(True)
    """

    __slots__ = ("_clean_url_extensions", "_files", "_index_as_default")

    def __init__(
        self,
        directory: str | Path,
        *,
        exclude: Iterable[ExcludePattern] = (),
        clean_url_extensions: tuple[str, ...] = (),
        index_as_default: bool = False,
    ) -> None:
        self._files = build_file_mapping(directory, exclude)
        self._clean_url_extensions = clean_url_extensions
        self._index_as_default = index_as_default
        logger.debug("Serving %d static files from %s", len(self._files), directory)

    @property
    def files(self) -> dict[str, Path]:
        return dict(self._files)

    def lookup(self, path: str) -> Path | None:
        """Resolve a request path to a file, or ``None``."""
        found = self._files.get(path)

        if found is None:
            for ext in self._clean_url_extensions:
                found = self._files.get(f"{path}.{ext}")
                if found is not None:
                    break

        if found is None and self._index_as_default:
            found = self._files.get(posixpath.join(path, "index.html"))

        return found

    def __call__(self, request: Request, response: Response) -> None:
        if request.method != "GET":
            return

        file_path = self.lookup(request.path)
        if file_path is None:
            return

        content_type, _ = mimetypes.guess_type(file_path.name)
        content_type = content_type or DEFAULT_CONTENT_TYPE

        if content_type.startswith("text/") or content_type == "application/json":
            response.text(file_path.read_text(encoding="utf-8"), 200, content_type)
        else:
            response.binary(file_path.read_bytes(), 200, content_type)
