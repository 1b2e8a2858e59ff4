"""Token-protected resource; answers early without raising."""

from http_service import TERMINATED, BaseRequest, NotFoundError, Route, UnauthorizedError


ITEMS = {"1": {"id": "1", "name": "first"}}


class CharlieRequest(BaseRequest):
    route = Route(methods=("GET", "DELETE"), path="/charlie/{item_id}")

    @classmethod
    async def handle(cls, req, res, service) -> None:  # noqa: ANN001
        request = cls(req, res, service)
        await request.run(request.authenticate, request.respond)

    def authenticate(self) -> object:
        if self.req.headers.get("authorization") != "Bearer secret":
            return self.unauthorized(
                UnauthorizedError("token missing or invalid", realm="charlie"),
                promised=False,
            )
        return None

    def respond(self) -> object:
        item = ITEMS.get(self.req.path_params["item_id"])
        if item is None:
            return self.not_found(NotFoundError("no such item"), promised=False)
        if self.req.method == "DELETE":
            return self.no_content(promised=False)
        self.res.json(item)
        return TERMINATED
