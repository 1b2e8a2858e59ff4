"""Per-request response sink rendered to a single Starlette response."""

from collections.abc import Mapping
from typing import Any

from fastapi.encoders import jsonable_encoder
from starlette.responses import JSONResponse, PlainTextResponse, Response

from http_service.errors import ResponseAlreadySentError


class ResponseSink:
    """Accumulates status and headers, then captures exactly one response body.

    Handlers write through ``send_status``, ``json``, ``send`` or
    ``send_response``. The dispatch entry returns :meth:`to_response` to the
    transport once the handler is done.
    """

    def __init__(self) -> None:
        self.status_code = 200
        self.headers: dict[str, str] = {}
        self._response: Response | None = None

    @property
    def sent(self) -> bool:
        return self._response is not None

    def set(self, headers: Mapping[str, str] | str, value: str | None = None) -> "ResponseSink":
        """Set one header (``set(name, value)``) or several (``set({...})``)."""
        if isinstance(headers, str):
            if value is None:
                raise ValueError(f"Header {headers!r} requires a value")
            headers = {headers: value}

        encoded = {name: str(val) for name, val in headers.items()}
        for name, val in encoded.items():
            try:
                name.encode("latin-1")
                val.encode("latin-1")
            except UnicodeEncodeError as e:
                raise ValueError(f"Header {name!r} is not latin-1 encodable") from e

        self.headers.update(encoded)
        return self

    def status(self, code: int) -> "ResponseSink":
        self.status_code = code
        return self

    def send_status(self, code: int) -> None:
        """Send ``code`` with an empty body."""
        self._commit(Response(status_code=code, headers=self.headers))
        self.status_code = code

    def json(self, body: Any) -> None:
        self._commit(
            JSONResponse(
                content=jsonable_encoder(body),
                status_code=self.status_code,
                headers=self.headers,
            )
        )

    def send(self, body: Any = None) -> None:
        """Send ``body``; mappings, lists and models go out as JSON."""
        if body is None:
            self._commit(Response(status_code=self.status_code, headers=self.headers))
        elif isinstance(body, bytes):
            self._commit(
                Response(
                    content=body,
                    status_code=self.status_code,
                    headers=self.headers,
                    media_type="application/octet-stream",
                )
            )
        elif isinstance(body, str):
            self._commit(
                PlainTextResponse(body, status_code=self.status_code, headers=self.headers)
            )
        else:
            self.json(body)

    def send_response(self, response: Response) -> None:
        """Hand over a prebuilt response (streaming, files, ...)."""
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        self._commit(response)
        self.status_code = response.status_code

    def to_response(self) -> Response | None:
        return self._response

    def _commit(self, response: Response) -> None:
        if self._response is not None:
            raise ResponseAlreadySentError(
                f"Response already sent with status {self._response.status_code}"
            )
        self._response = response
