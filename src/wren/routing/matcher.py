"""Path matching for ``:param`` and ``*`` route patterns.

A pattern such as ``/user/:id/:tx`` matches paths with exactly the same
number of segments; each ``:name`` segment captures one path segment.
A pattern containing ``*`` matches through an anchored regex instead,
where ``*`` swallows any remaining suffix.

Empty segments are discarded on both sides, so ``//user/42/`` and
``/user/42`` are the same path.
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache

_TOKEN = re.compile(r"(:\w+|\*)")

WILDCARD = "*"


@dataclass(frozen=True, slots=True)
class PathMatch:
    """Result of matching one pattern against one path."""

    matched: bool
    params: dict[str, str] = field(default_factory=dict)


NO_MATCH = PathMatch(matched=False)


def split_path(path: str) -> list[str]:
    """Split on ``/`` and drop empty segments."""
    return [part for part in path.split("/") if part]


def _translate(fragment: str) -> tuple[str, list[str]]:
    """Translate pattern text into regex source plus capture names."""
    names: list[str] = []
    out: list[str] = []
    for token in _TOKEN.split(fragment):
        if not token:
            continue
        if token == WILDCARD:
            out.append(".*")
        elif token.startswith(":") and len(token) > 1:
            names.append(token[1:])
            out.append("([^/]+)")
        else:
            out.append(re.escape(token))
    return "".join(out), names


@dataclass(frozen=True, slots=True)
class CompiledPattern:
    """A route pattern prepared for repeated matching.

    Non-wildcard patterns keep one regex per segment so the segment
    count can be checked before any regex runs.
    """

    pattern: str
    segments: tuple[re.Pattern[str], ...]
    names: tuple[tuple[str, ...], ...]
    wildcard: re.Pattern[str] | None = None
    wildcard_names: tuple[str, ...] = ()

    def match(self, path: str) -> PathMatch:
        parts = split_path(path)

        if self.wildcard is not None:
            found = self.wildcard.match("/" + "/".join(parts))
            if found is None:
                return NO_MATCH
            return PathMatch(True, dict(zip(self.wildcard_names, found.groups(), strict=True)))

        if len(parts) != len(self.segments):
            return NO_MATCH

        params: dict[str, str] = {}
        for part, regex, names in zip(parts, self.segments, self.names, strict=True):
            found = regex.fullmatch(part)
            if found is None:
                return NO_MATCH
            params.update(zip(names, found.groups(), strict=True))
        return PathMatch(True, params)


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str) -> CompiledPattern:
    """Compile *pattern* once; results are cached per pattern string."""
    parts = split_path(pattern)

    if WILDCARD in pattern:
        source, names = _translate("/" + "/".join(parts))
        return CompiledPattern(
            pattern=pattern,
            segments=(),
            names=(),
            wildcard=re.compile(f"^{source}$"),
            wildcard_names=tuple(names),
        )

    segments: list[re.Pattern[str]] = []
    all_names: list[tuple[str, ...]] = []
    for part in parts:
        source, names = _translate(part)
        segments.append(re.compile(source))
        all_names.append(tuple(names))
    return CompiledPattern(pattern=pattern, segments=tuple(segments), names=tuple(all_names))


def match_path(pattern: str, path: str) -> PathMatch:
    """Match a concrete *path* against a route *pattern*.

    Examples::

        match_path("/user/:id", "/user/42")        -> PathMatch(True, {"id": "42"})
        match_path("/user/:id", "/user/42/extra")  -> PathMatch(False, {})
        match_path("/files/*", "/files/a/b.txt")   -> PathMatch(True, {})
    """
    return compile_pattern(pattern).match(path)
