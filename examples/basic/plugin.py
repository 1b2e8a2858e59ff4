"""Example plugin: one service built from a handler directory, one sharing its context."""

from http_service import HTTPService, HTTPServicePlugin, Injector


def build_my_service(my_service, server, log, settings) -> HTTPService:  # noqa: ANN001
    return my_service.create(None, {"server": server, "log": log, "settings": settings})


def build_status_service(status_service, injector: Injector) -> HTTPService:  # noqa: ANN001
    return status_service.with_shared(injector.get("my:http:service"), {"name": "status"})


class MyServicePlugin(HTTPServicePlugin):
    name = "my_service"

    def _on_initialize(self) -> None:
        # import the service classes from another module
        self.directory("services")

        # register the routers
        self.router("my:http:service", build_my_service)
        self.router("my:http:status", build_status_service)
