"""Command line entry point: serve plugins or inspect the routes they mount."""

import importlib
import os

import typer
import uvicorn
from fastapi import FastAPI
from rich.console import Console
from rich.table import Table

from http_service._version import __version__
from http_service.app import create_app
from http_service.config import get_settings
from http_service.core.logging import get_logger, setup_logging
from http_service.plugins import AbstractPlugin


app = typer.Typer(
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)

logger = get_logger(__name__)

PLUGINS_ENV = "HTTP_SERVICE_SERVE_PLUGINS"


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"http-service {__version__}")
        raise typer.Exit()


@app.callback()
def app_main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Mountable HTTP services on FastAPI."""


def import_plugin(spec: str) -> type[AbstractPlugin]:
    """Import a plugin class from ``module:Class``."""
    module_name, _, class_name = spec.partition(":")
    if not module_name or not class_name:
        raise typer.BadParameter(f"Expected 'module:Class', got {spec!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"Cannot import {module_name!r}: {e}") from e

    plugin_class = getattr(module, class_name, None)
    if not isinstance(plugin_class, type) or not issubclass(plugin_class, AbstractPlugin):
        raise typer.BadParameter(f"{spec!r} is not a plugin class")
    return plugin_class


def app_factory() -> FastAPI:
    """Build the application from the plugins named in ``HTTP_SERVICE_SERVE_PLUGINS``.

    Used by uvicorn when reloading, since the reloader imports the
    application in a fresh process.
    """
    specs = [spec for spec in os.environ.get(PLUGINS_ENV, "").split(",") if spec]
    return create_app(get_settings(), [import_plugin(spec) for spec in specs])


@app.command()
def serve(
    plugins: list[str] = typer.Argument(..., help="Plugin classes as 'module:Class'"),
    host: str | None = typer.Option(None, "--host", help="Host to bind to"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to listen on"),
    reload: bool | None = typer.Option(
        None, "--reload/--no-reload", help="Enable auto-reload for development"
    ),
    json_logs: bool | None = typer.Option(
        None, "--json-logs/--no-json-logs", help="Render logs as JSON"
    ),
) -> None:
    """Run the given plugins in a uvicorn server."""
    settings = get_settings()
    setup_logging(
        json_logs=settings.logging.json_logs if json_logs is None else json_logs,
        log_level_name=settings.logging.level,
    )

    plugin_classes = [import_plugin(spec) for spec in plugins]
    bind_host = host or settings.server.host
    bind_port = port or settings.server.port
    use_reload = settings.server.reload if reload is None else reload

    logger.info(
        "server_starting", host=bind_host, port=bind_port, plugins=plugins, reload=use_reload
    )

    if use_reload:
        os.environ[PLUGINS_ENV] = ",".join(plugins)
        uvicorn.run(
            "http_service.cli:app_factory",
            factory=True,
            host=bind_host,
            port=bind_port,
            reload=True,
            log_config=None,
        )
        return

    uvicorn.run(
        create_app(settings, plugin_classes),
        host=bind_host,
        port=bind_port,
        reload=False,
        log_config=None,
    )


@app.command()
def routes(
    plugins: list[str] = typer.Argument(..., help="Plugin classes as 'module:Class'"),
) -> None:
    """Start the given plugins and list the routes they mount."""
    settings = get_settings()
    setup_logging(json_logs=False, log_level_name="WARNING")

    fastapi_app = create_app(settings, [import_plugin(spec) for spec in plugins])
    plugin_host = fastapi_app.state.plugin_host
    server = fastapi_app.state.server

    table = Table(title="Mounted routes")
    table.add_column("Router")
    table.add_column("Methods")
    table.add_column("Path")
    table.add_column("Handler")

    plugin_host.start_all()
    try:
        for key in server.mounted():
            for route in server.installed(key):
                table.add_row(
                    key,
                    ", ".join(sorted(getattr(route, "methods", None) or [])),
                    getattr(route, "path", ""),
                    getattr(route, "name", ""),
                )
    finally:
        plugin_host.stop_all()

    Console().print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
