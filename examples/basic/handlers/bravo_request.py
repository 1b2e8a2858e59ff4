import asyncio

from http_service import BaseRequest, BadRequestError, Route


class BravoRequest(BaseRequest):
    route = Route(method="GET", path="/bravo")

    @classmethod
    async def handle(cls, req, res, service) -> None:  # noqa: ANN001
        request = cls(req, res, service)
        await request.run(request.step1, request.step2, request.step3)

    async def step1(self) -> None:
        await asyncio.sleep(0)

    def step2(self) -> None:
        if self.req.query_params.get("fail") == "validation":
            self.bad_request(BadRequestError("fail must not be 'validation'"))
        if self.req.query_params.get("fail") == "crash":
            raise RuntimeError("step2 crashed")

    def step3(self) -> None:
        self.res.send("asynchronously")
