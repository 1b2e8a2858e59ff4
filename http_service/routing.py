"""Handler contract: route descriptors, the handler protocol and handler discovery.

A handler is any class exposing a ``route`` descriptor and a ``handle``
callable::

    class AlphaRequest:
        route = Route(method="GET", path="/alpha")

        @classmethod
        def handle(cls, request, response, service):
            response.json({"fake": "data"})

Services collect handlers either from an explicit list or with
:func:`load_handlers`, which imports every module in a directory next to
the calling module.
"""

import importlib
import importlib.util
import inspect
import sys
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import structlog

from http_service.errors import HandlerDiscoveryError, RouteConfigurationError


if TYPE_CHECKING:
    from starlette.requests import Request

    from http_service.response import ResponseSink
    from http_service.service import HTTPService


logger = structlog.get_logger(__name__)

HTTP_METHODS = frozenset({"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"})


@dataclass(frozen=True)
class Route:
    """Static route descriptor of a handler.

    Exactly one of ``method`` and ``methods`` is meaningful. When both are
    given ``methods`` wins; a lone ``method`` is normalized to a one-element
    verb tuple.
    """

    path: str
    method: str | None = None
    methods: tuple[str, ...] | None = None
    middleware: tuple[Callable[..., Any], ...] = ()

    def __post_init__(self) -> None:
        if not self.path:
            raise RouteConfigurationError("Route path must not be empty")
        if isinstance(self.methods, str):
            object.__setattr__(self, "methods", (self.methods,))
        elif self.methods is not None:
            object.__setattr__(self, "methods", tuple(self.methods))
        object.__setattr__(self, "middleware", tuple(self.middleware))
        # raises on missing or unknown verbs
        self.verbs  # noqa: B018

    @property
    def verbs(self) -> tuple[str, ...]:
        """Upper-cased, de-duplicated verbs in declaration order."""
        if self.methods:
            declared: Iterable[str] = self.methods
        elif self.method:
            declared = (self.method,)
        else:
            raise RouteConfigurationError(f"Route {self.path!r} declares no method")

        verbs = tuple(dict.fromkeys(verb.upper() for verb in declared))
        unknown = [verb for verb in verbs if verb not in HTTP_METHODS]
        if unknown:
            raise RouteConfigurationError(
                f"Route {self.path!r} declares unsupported methods: {unknown}"
            )
        return verbs

    @classmethod
    def coerce(cls, value: "Route | Mapping[str, Any]") -> "Route":
        """Accept a :class:`Route` or a mapping with the same keys."""
        if isinstance(value, Route):
            return value
        if isinstance(value, Mapping):
            try:
                return cls(**value)
            except TypeError as e:
                raise RouteConfigurationError(f"Invalid route descriptor {value!r}: {e}") from e
        raise RouteConfigurationError(f"Invalid route descriptor {value!r}")


@runtime_checkable
class RequestHandler(Protocol):
    """Protocol for classes routed by a service."""

    route: "Route | Mapping[str, Any]"

    def handle(
        self, request: "Request", response: "ResponseSink", service: "HTTPService"
    ) -> Awaitable[None] | None:
        """Process one matching request."""
        ...


def is_request_handler(obj: Any) -> bool:
    """Check whether ``obj`` is a handler class."""
    return (
        inspect.isclass(obj)
        and getattr(obj, "route", None) is not None
        and callable(getattr(obj, "handle", None))
    )


def load_handlers(directory: str | Path = "../handlers") -> list[type[RequestHandler]]:
    """Load handler classes from a directory relative to the calling module.

    Args:
        directory: Directory of handler modules, relative to the directory of
            the module calling this function (absolute paths are used as is)

    Returns:
        Handler classes in filename order, then definition order
    """
    frame = inspect.currentframe()
    caller = frame.f_back if frame else None
    try:
        caller_file = caller.f_globals.get("__file__") if caller else None
    finally:
        del frame, caller

    base = Path(caller_file).resolve().parent if caller_file else Path.cwd()
    return discover_handlers((base / directory).resolve())


def discover_handlers(dirname: Path) -> list[type[RequestHandler]]:
    """Import every handler module in ``dirname`` and collect its handlers.

    ``__init__.py`` and ``_``-prefixed modules are skipped, as are files
    without a ``.py`` extension.
    """
    if not dirname.is_dir():
        raise HandlerDiscoveryError(f"Handler directory not found: {dirname}")

    package = _package_name(dirname)
    handlers: list[type[RequestHandler]] = []

    for path in sorted(dirname.glob("*.py")):
        if path.stem == "__init__" or path.stem.startswith("_"):
            continue

        module = _import_module(path, package)
        found = _handlers_in(module)
        logger.debug(
            "handler_module_loaded",
            module=module.__name__,
            handlers=[handler.__name__ for handler in found],
        )
        handlers.extend(found)

    return handlers


def load_modules(dirname: Path) -> list[ModuleType]:
    """Import every module in ``dirname`` with the discovery rules above."""
    if not dirname.is_dir():
        raise HandlerDiscoveryError(f"Module directory not found: {dirname}")

    package = _package_name(dirname)
    return [
        _import_module(path, package)
        for path in sorted(dirname.glob("*.py"))
        if path.stem != "__init__" and not path.stem.startswith("_")
    ]


def _package_name(dirname: Path) -> str | None:
    """Dotted name of ``dirname`` when it is an importable package."""
    if not (dirname / "__init__.py").exists():
        return None

    parts = [dirname.name]
    parent = dirname.parent
    while (parent / "__init__.py").exists():
        parts.insert(0, parent.name)
        parent = parent.parent
    name = ".".join(parts)

    try:
        spec = importlib.util.find_spec(name)
    except ModuleNotFoundError:
        return None
    if spec is None or not spec.submodule_search_locations:
        return None
    locations = [Path(location).resolve() for location in spec.submodule_search_locations]
    return name if dirname in locations else None


def _import_module(path: Path, package: str | None) -> ModuleType:
    try:
        if package:
            return importlib.import_module(f"{package}.{path.stem}")

        module_name = f"{path.parent.name}.{path.stem}"
        existing = sys.modules.get(module_name)
        if existing is not None and getattr(existing, "__file__", None) == str(path):
            return existing

        spec = importlib.util.spec_from_file_location(module_name, path)
        if not spec or not spec.loader:
            raise HandlerDiscoveryError(f"Cannot create module spec for {path}")

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(module_name, None)
            raise
        return module
    except HandlerDiscoveryError:
        raise
    except Exception as e:
        logger.error("handler_module_load_failed", path=str(path), error=str(e), exc_info=e)
        raise HandlerDiscoveryError(f"Failed to import {path}: {e}") from e


def _handlers_in(module: ModuleType) -> list[type[RequestHandler]]:
    # an explicit ``handler`` export wins over scanning
    exported = getattr(module, "handler", None)
    if exported is not None:
        if not is_request_handler(exported):
            raise HandlerDiscoveryError(
                f"{module.__name__}.handler does not implement route/handle"
            )
        return [exported]

    return [
        obj
        for obj in vars(module).values()
        if is_request_handler(obj) and obj.__module__ == module.__name__
    ]
