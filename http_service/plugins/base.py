"""Plugin base class and lifecycle state machine.

A plugin is instantiated by the :class:`~http_service.plugins.host.PluginHost`
with the shared :class:`~http_service.container.Injector` and moves through
``uninitialized -> initialized -> started -> stopped``; a stopped plugin can
be started again.
"""

import inspect
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar

import structlog

from http_service.container import Entry, Injector
from http_service.errors import HandlerDiscoveryError, PluginStateError
from http_service.routing import load_modules
from http_service.service import HTTPService


logger = structlog.get_logger(__name__)


class PluginState(str, Enum):
    """Lifecycle states of a plugin."""

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    STARTED = "started"
    STOPPED = "stopped"


class AbstractPlugin:
    """Base implementation of a plugin.

    Subclasses customize the lifecycle through ``_on_initialize``,
    ``_on_start`` and ``_on_stop``; the public methods own the state checks.
    """

    name: ClassVar[str | None] = None

    def __init__(self, injector: Injector, name: str | None = None) -> None:
        self.injector = injector
        self.name = name or type(self).name or type(self).__name__  # type: ignore[misc]
        self.state = PluginState.UNINITIALIZED
        self.log = logger.bind(plugin=self.name)

    def initialize(self) -> None:
        """Declare this plugin's registrations. Called once by the host."""
        if self.state is not PluginState.UNINITIALIZED:
            self.log.warning("plugin_already_initialized", state=self.state.value)
            return

        self._on_initialize()
        self.state = PluginState.INITIALIZED
        self.log.info("plugin_initialized")

    def start(self) -> None:
        if self.state is PluginState.UNINITIALIZED:
            raise PluginStateError(f"Plugin {self.name!r} must be initialized before start")
        if self.state is PluginState.STARTED:
            self.log.debug("plugin_already_started")
            return

        self._on_start()
        self.state = PluginState.STARTED
        self.log.info("plugin_started")

    def stop(self) -> None:
        """Stop the plugin. No-op unless it is started."""
        if self.state is not PluginState.STARTED:
            return

        self._on_stop()
        self.state = PluginState.STOPPED
        self.log.info("plugin_stopped")

    def _on_initialize(self) -> None:
        """Hook for subclasses to declare registrations."""
        pass

    def _on_start(self) -> None:
        pass

    def _on_stop(self) -> None:
        pass

    def directory(self, path: str | Path) -> list[Entry]:
        """Register the service classes of every module in ``path``.

        ``path`` is relative to the module defining the plugin class. Each
        service class is registered under its module's name with type
        ``module``, so router factories can ask for it by parameter name.
        """
        base = Path(inspect.getfile(type(self))).resolve().parent
        entries = []

        for module in load_modules((base / path).resolve()):
            service_class = _service_class(module)
            if service_class is None:
                self.log.debug("module_without_service", module=module.__name__)
                continue

            stem = module.__name__.rsplit(".", 1)[-1]
            entries.append(
                self.injector.value(stem, service_class, type="module", plugin=self)
            )

        return entries

    def router(self, name: str, factory: Callable[..., HTTPService]) -> Entry:
        """Register a factory producing a mountable service."""
        return self.injector.factory(name, factory, type="router", plugin=self)

    def factory(self, name: str, factory: Callable[..., Any]) -> Entry:
        return self.injector.factory(name, factory, type="factory", plugin=self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, state={self.state.value!r})"


def _service_class(module: Any) -> type[HTTPService] | None:
    exported = getattr(module, "service", None)
    if exported is not None:
        return exported  # type: ignore[no-any-return]

    candidates = [
        obj
        for obj in vars(module).values()
        if inspect.isclass(obj)
        and issubclass(obj, HTTPService)
        and obj.__module__ == module.__name__
        and not inspect.isabstract(obj)
    ]
    if len(candidates) > 1:
        raise HandlerDiscoveryError(
            f"{module.__name__} defines several services; export one as 'service'"
        )
    return candidates[0] if candidates else None
