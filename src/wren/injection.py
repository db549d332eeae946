"""Dependency registry — share pre-built instances with handlers.

Instances are stored under an explicit key chosen at both the injection
and the retrieval site: either a ``DependencyKey`` handle or a class,
whose name is the key. An optional identifier distinguishes several
instances of the same key::

    REPO = DependencyKey[Repo]("Repo")

    app.inject(Repo("primary"), "one", key=REPO)

    def handler(request, response):
        repo = request.retrieve(REPO, "one")

The registry is cleared after every invocation; each request works on
its own snapshot.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, Generic, TypeAlias, TypeVar, overload

from wren.errors import DependencyNotFound, DuplicateDependency

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class DependencyKey(Generic[T]):
    """A statically declared name for a dependency of type ``T``."""

    name: str

    def __str__(self) -> str:
        return self.name


KeyLike: TypeAlias = DependencyKey[Any] | type


def key_name(key: KeyLike) -> str:
    """The declared name of *key*."""
    if isinstance(key, DependencyKey):
        return key.name
    if isinstance(key, type):
        return key.__name__
    msg = f"Dependency keys must be a DependencyKey or a class, got {key!r}"
    raise TypeError(msg)


def registry_key(key: KeyLike, identifier: str = "") -> str:
    """``name`` or ``name:identifier``."""
    name = key_name(key)
    return f"{name}:{identifier}" if identifier else name


@dataclass(frozen=True, slots=True)
class DependencyEntry:
    """One injected instance."""

    name: str
    identifier: str
    instance: Any


class DependencyRegistry:
    """Keyed store of injected instances with duplicate prevention."""

    __slots__ = ("_entries",)

    def __init__(self, entries: dict[str, DependencyEntry] | None = None) -> None:
        self._entries: dict[str, DependencyEntry] = dict(entries or {})

    def inject(
        self,
        instance: object,
        identifier: str = "",
        *,
        key: KeyLike | None = None,
    ) -> None:
        """Store *instance* under *key* (default: its class).

        Raises ``DuplicateDependency`` if the derived key is taken.
        """
        resolved = key if key is not None else type(instance)
        name = key_name(resolved)
        full_key = registry_key(resolved, identifier)

        if full_key in self._entries:
            if identifier:
                msg = f"An instance of '{name}' with identifier '{identifier}' is already injected."
            else:
                msg = f"An instance of '{name}' is already injected."
            raise DuplicateDependency(msg)

        self._entries[full_key] = DependencyEntry(name, identifier, instance)

    @overload
    def retrieve(self, key: DependencyKey[T], identifier: str = "") -> T: ...

    @overload
    def retrieve(self, key: type[T], identifier: str = "") -> T: ...

    def retrieve(self, key: Any, identifier: str = "") -> Any:
        """Return the instance stored under *key* and *identifier*.

        Raises ``DependencyNotFound`` when nothing is stored there. An
        instance injected with an identifier is only reachable with that
        identifier.
        """
        entry = self._entries.get(registry_key(key, identifier))
        if entry is None:
            name = key_name(key)
            if identifier:
                msg = f"No instance found for '{name}' with identifier '{identifier}'."
            else:
                msg = f"No instance found for '{name}'."
            raise DependencyNotFound(msg)
        return entry.instance

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def snapshot(self) -> DependencyRegistry:
        """An independent copy for one invocation."""
        return DependencyRegistry(self._entries)

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()
