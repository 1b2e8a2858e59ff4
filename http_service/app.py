"""FastAPI application factory wiring plugins, injector and transport."""

from collections.abc import Iterable

from fastapi import FastAPI

from http_service._version import __version__
from http_service.config import Settings, get_settings
from http_service.container import Injector
from http_service.core.logging import get_logger
from http_service.plugins import AbstractPlugin, PluginHost
from http_service.server import HTTPServer


logger = get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    plugins: Iterable[type[AbstractPlugin]] = (),
    title: str = "HTTP Service",
) -> FastAPI:
    """Create the application and initialize ``plugins``.

    The injector starts out with ``server`` (the :class:`HTTPServer`),
    ``settings``, ``log`` and ``injector``. Plugins are started and stopped by
    the application lifespan; the host is available as
    ``app.state.plugin_host``.
    """
    settings = settings or get_settings()

    injector = Injector()
    host = PluginHost(injector, settings)

    app = FastAPI(title=title, version=__version__, lifespan=host.lifespan)
    server = HTTPServer(app)

    injector.value("server", server)
    injector.value("settings", settings)
    injector.value("log", get_logger("http_service.requests"))

    for plugin_class in plugins:
        host.register(plugin_class)
    host.initialize_all()

    app.state.settings = settings
    app.state.server = server
    app.state.plugin_host = host

    logger.debug(
        "application_created",
        plugins=[plugin.name for plugin in host.plugins],
        category="lifecycle",
    )
    return app
