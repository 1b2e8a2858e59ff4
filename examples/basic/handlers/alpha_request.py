from http_service import Route


class AlphaRequest:
    route = Route(method="GET", path="/alpha")

    @classmethod
    def handle(cls, req, res, service) -> None:  # noqa: ANN001
        res.json({"fake": "data"})
