"""Status endpoint reusing the parent service's server, logger and settings."""

from http_service import HTTPService, Route


class StatusRequest:
    route = Route(methods=("GET", "HEAD"), path="/status")

    @classmethod
    def handle(cls, req, res, service) -> None:  # noqa: ANN001
        res.set({"Cache-Control": "no-store"})
        res.json({"status": "ok", "service": service.name, "parent": type(service.shared).__name__})


class StatusService(HTTPService):
    handlers = [StatusRequest]
