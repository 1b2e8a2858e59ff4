"""Dependency injection container shared by plugins.

Entries are registered under a name with a type tag (``value``, ``module``,
``router``, ...) and optionally the plugin that owns them. Factories are
called lazily, with their parameters resolved by name from other entries,
and their results are cached.
"""

import inspect
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

import structlog

from http_service.errors import DependencyInjectionError


logger = structlog.get_logger(__name__)

_UNSET: Any = object()


@dataclass
class Entry:
    """A registered dependency."""

    name: str
    type: str = "value"
    plugin: Any = None
    factory: Callable[..., Any] | None = None
    value: Any = field(default=_UNSET, repr=False)

    @property
    def resolved(self) -> bool:
        return self.value is not _UNSET


class EntrySet:
    """Ordered result of :meth:`Injector.filter`."""

    def __init__(self, injector: "Injector", entries: list[Entry]) -> None:
        self._injector = injector
        self._entries = entries

    def values(self) -> list[Any]:
        """Resolved values, in registration order."""
        return [self._injector.get(entry.name) for entry in self._entries]

    def keys(self) -> list[str]:
        return [entry.name for entry in self._entries]

    def items(self) -> list[tuple[str, Any]]:
        return list(zip(self.keys(), self.values(), strict=True))

    def filter(self, **query: Any) -> "EntrySet":
        return EntrySet(self._injector, _match(self._entries, query))

    def __iter__(self) -> Iterator[Entry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class Injector:
    """Dependency injection container for plugins and their services."""

    def __init__(self) -> None:
        self._entries: dict[str, Entry] = {}
        self._resolving: list[str] = []

    def register(
        self,
        name: str,
        *,
        value: Any = _UNSET,
        factory: Callable[..., Any] | None = None,
        type: str = "value",
        plugin: Any = None,
    ) -> Entry:
        """Register a value or a factory under ``name``."""
        if name in self._entries:
            raise DependencyInjectionError(f"Dependency {name!r} is already registered")
        if (value is _UNSET) == (factory is None):
            raise ValueError("Exactly one of value or factory must be provided")

        entry = Entry(name=name, type=type, plugin=plugin, factory=factory, value=value)
        self._entries[name] = entry
        logger.debug(
            "dependency_registered",
            name=name,
            type=type,
            plugin=getattr(plugin, "name", None),
        )
        return entry

    def value(self, name: str, value: Any, **kwargs: Any) -> Entry:
        return self.register(name, value=value, **kwargs)

    def factory(self, name: str, factory: Callable[..., Any], **kwargs: Any) -> Entry:
        return self.register(name, factory=factory, **kwargs)

    def get(self, name: str) -> Any:
        """Resolve ``name``, calling its factory on first access."""
        entry = self._entries.get(name)
        if entry is None:
            raise DependencyInjectionError(f"Dependency {name!r} not registered")
        if entry.resolved:
            return entry.value

        if name in self._resolving:
            cycle = " -> ".join([*self._resolving, name])
            raise DependencyInjectionError(f"Circular dependency: {cycle}")

        assert entry.factory is not None
        self._resolving.append(name)
        try:
            entry.value = self.invoke(entry.factory)
        finally:
            self._resolving.pop()

        logger.debug("dependency_resolved", name=name, type=entry.type)
        return entry.value

    def invoke(self, fn: Callable[..., Any]) -> Any:
        """Call ``fn`` with its parameters resolved by name."""
        return fn(**self.resolve_arguments(fn))

    def resolve_arguments(self, fn: Callable[..., Any]) -> dict[str, Any]:
        arguments: dict[str, Any] = {}
        for parameter in inspect.signature(fn).parameters.values():
            if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
                continue
            if parameter.name in self._entries:
                arguments[parameter.name] = self.get(parameter.name)
            elif parameter.default is parameter.empty:
                raise DependencyInjectionError(
                    f"Cannot resolve parameter {parameter.name!r} of {getattr(fn, '__qualname__', fn)!r}"
                )
        return arguments

    def filter(self, **query: Any) -> EntrySet:
        """Entries whose attributes equal every value in ``query``."""
        return EntrySet(self, _match(list(self._entries.values()), query))

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def _match(entries: list[Entry], query: dict[str, Any]) -> list[Entry]:
    unknown = [key for key in query if key not in Entry.__dataclass_fields__]
    if unknown:
        raise ValueError(f"Unknown filter keys: {unknown}")
    return [
        entry
        for entry in entries
        if all(getattr(entry, key) == expected for key, expected in query.items())
    ]
