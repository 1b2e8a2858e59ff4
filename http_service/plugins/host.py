"""Plugin host driving plugin lifecycles with the application."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog

from http_service.config import Settings
from http_service.container import Injector
from http_service.errors import PluginStateError
from http_service.plugins.base import AbstractPlugin


logger = structlog.get_logger(__name__)


class PluginHost:
    """Registry for plugins with lifecycle management."""

    def __init__(self, injector: Injector | None = None, settings: Settings | None = None) -> None:
        self.injector = injector or Injector()
        self.settings = settings
        self._plugins: dict[str, AbstractPlugin] = {}

        if "injector" not in self.injector:
            self.injector.value("injector", self.injector)

    @property
    def plugins(self) -> list[AbstractPlugin]:
        return list(self._plugins.values())

    def get(self, name: str) -> AbstractPlugin | None:
        return self._plugins.get(name)

    def register(
        self, plugin_class: type[AbstractPlugin], name: str | None = None
    ) -> AbstractPlugin | None:
        """Instantiate and register a plugin.

        Returns:
            The plugin, or None when settings disable it
        """
        plugin = plugin_class(self.injector, name=name)

        if self.settings is not None and not self.settings.is_plugin_enabled(plugin.name):
            logger.info("plugin_disabled", plugin=plugin.name)
            return None
        if plugin.name in self._plugins:
            raise PluginStateError(f"Plugin {plugin.name!r} is already registered")

        self._plugins[plugin.name] = plugin
        logger.debug("plugin_registered", plugin=plugin.name, cls=plugin_class.__name__)
        return plugin

    def initialize_all(self) -> None:
        for plugin in self._plugins.values():
            plugin.initialize()

        logger.info("plugins_initialized", count=len(self._plugins))

    def start_all(self) -> None:
        """Start plugins in registration order.

        If a plugin fails to start, the plugins started before it are stopped
        and the error propagates.
        """
        started: list[AbstractPlugin] = []
        try:
            for plugin in self._plugins.values():
                plugin.start()
                started.append(plugin)
        except Exception as e:
            logger.error("plugins_start_failed", error=str(e), exc_info=e)
            for plugin in reversed(started):
                plugin.stop()
            raise

        logger.info("plugins_started", count=len(started))

    def stop_all(self) -> None:
        """Stop plugins in reverse registration order."""
        for plugin in reversed(self._plugins.values()):
            try:
                plugin.stop()
            except Exception as e:
                logger.error(
                    "plugin_stop_failed", plugin=plugin.name, error=str(e), exc_info=e
                )

        logger.info("plugins_stopped", count=len(self._plugins))

    @asynccontextmanager
    async def lifespan(self, app: Any) -> AsyncIterator[None]:
        """FastAPI lifespan starting plugins on startup and stopping them on shutdown."""
        self.start_all()
        try:
            yield
        finally:
            self.stop_all()
