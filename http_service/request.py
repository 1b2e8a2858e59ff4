"""Request lifecycle base for handlers built as chains of steps."""

import inspect
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, ClassVar, Final
from urllib.parse import quote

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel
from starlette.requests import Request

from http_service.errors import TerminationError
from http_service.response import ResponseSink


if TYPE_CHECKING:
    from http_service.service import HTTPService


class _Terminated:
    """Step result meaning "a response was sent, stop the chain"."""

    def __repr__(self) -> str:
        return "TERMINATED"


TERMINATED: Final = _Terminated()

Step = Callable[[], Any | Awaitable[Any]]

NO_CACHE_HEADERS: Final = {"Cache-Control": "no-store", "Pragma": "no-cache"}

_HEADER_SAFE: Final = "".join(chr(code) for code in range(0x20, 0x7F) if chr(code) not in "%\\\"")


def serialize_error(err: Any, default_error: str) -> Any:
    """Turn ``err`` into a JSON-compatible response body."""
    if isinstance(err, Mapping):
        return jsonable_encoder(dict(err))
    if isinstance(err, BaseModel):
        return err.model_dump(mode="json")
    if callable(getattr(err, "to_dict", None)):
        return jsonable_encoder(err.to_dict())
    if isinstance(err, BaseException):
        body: dict[str, Any] = {"error": default_error}
        if str(err):
            body["error_description"] = str(err)
        return body
    return jsonable_encoder(err)


def _field(err: Any, name: str) -> Any:
    if isinstance(err, Mapping):
        return err.get(name)
    return getattr(err, name, None)


def _header_value(value: Any) -> str:
    return quote(str(value), safe=_HEADER_SAFE)


class BaseRequest:
    """Per-request object owning the request, the response sink and the service.

    Subclasses implement :meth:`handle`, usually as a chain of steps::

        class BravoRequest(BaseRequest):
            route = Route(method="GET", path="/bravo")

            @classmethod
            async def handle(cls, req, res, service):
                request = cls(req, res, service)
                await request.run(request.step1, request.step2)

    A step that needs to answer early calls one of the terminal helpers.
    With ``promised=True`` (the default) they raise :class:`TerminationError`
    after writing the response, which unwinds the chain up to :meth:`error`.
    With ``promised=False`` they return :data:`TERMINATED` instead, and a
    step returning that value ends the chain in :meth:`run`.
    """

    default_realm: ClassVar[str] = "user"

    def __init__(self, req: Request, res: ResponseSink, service: "HTTPService") -> None:
        self.req = req
        self.res = res
        self.service = service

    @classmethod
    def handle(
        cls, req: Request, res: ResponseSink, service: "HTTPService"
    ) -> Awaitable[None] | None:
        raise NotImplementedError("Handle must be implemented by BaseRequest subclass")

    @property
    def log(self) -> Any:
        """The service's ``log`` dependency, or None."""
        return getattr(self.service, "log", None)

    async def run(self, *steps: Step) -> None:
        """Run ``steps`` in order, routing any failure to :meth:`error`."""
        try:
            for step in steps:
                result = step()
                if inspect.isawaitable(result):
                    result = await result
                if result is TERMINATED:
                    return
        except Exception as err:
            self.error(err)

    def no_content(self, promised: bool = True) -> _Terminated:
        """204 No Content."""
        self.res.send_status(204)
        return self._terminate(promised)

    def bad_request(self, err: Any, promised: bool = True) -> _Terminated:
        """400 Bad Request with ``err`` as the body."""
        body = serialize_error(err, "invalid_request")
        self.res.set(NO_CACHE_HEADERS)
        self._log_error("bad_request", body, 400)
        self.res.status(400).json(body)
        return self._terminate(promised)

    def unauthorized(self, err: Any, promised: bool = True) -> _Terminated:
        """401 Unauthorized with a Bearer ``WWW-Authenticate`` challenge."""
        self.res.set({"WWW-Authenticate": self.challenge(err)})
        self.res.send_status(401)
        return self._terminate(promised)

    def not_found(self, err: Any, promised: bool = True) -> _Terminated:
        """404 Not Found with ``err`` as the body."""
        body = serialize_error(err, "not_found")
        self.res.set(NO_CACHE_HEADERS)
        self._log_error("not_found", body, 404)
        self.res.status(404).json(body)
        return self._terminate(promised)

    def internal_server_error(self, err: Any) -> None:
        """500 Internal Server Error with an empty body. Never raises."""
        log = self.log
        if log is not None:
            log.error(
                "internal_server_error",
                error=str(err),
                method=self.req.method,
                path=self.req.url.path,
                exc_info=err if isinstance(err, BaseException) else None,
            )

        # a late failure after a response went out cannot be reported to the client
        if not self.res.sent:
            # the failed step may have left headers that do not encode
            self.res.headers.clear()
            self.res.send_status(500)

    def error(self, err: Any) -> None:
        """Uncaught error entry point for a handling chain."""
        if not isinstance(err, TerminationError):
            self.internal_server_error(err)

    def challenge(self, err: Any) -> str:
        """Build the ``WWW-Authenticate`` value for ``err``.

        ``realm`` falls back to :attr:`default_realm` (or the service's
        ``settings.default_realm``); ``error`` falls back to the error message.
        Characters outside printable ASCII are percent-encoded.
        """
        realm = _field(err, "realm") or self._default_realm()
        error = _field(err, "error") or _field(err, "message")
        if error is None and isinstance(err, BaseException) and str(err):
            error = str(err)
        description = _field(err, "error_description")

        challenge = "Bearer "
        challenge += f"realm={_header_value(realm)} "
        if error:
            challenge += f"error={_header_value(error)} "
        if description:
            challenge += f"error_description={_header_value(description)}"
        return challenge

    def _default_realm(self) -> str:
        settings = getattr(self.service, "settings", None)
        return getattr(settings, "default_realm", None) or self.default_realm

    def _log_error(self, event: str, body: Any, status_code: int) -> None:
        log = self.log
        if log is not None:
            log.error(
                event,
                error=body,
                status_code=status_code,
                method=self.req.method,
                path=self.req.url.path,
            )

    def _terminate(self, promised: bool) -> _Terminated:
        if promised:
            raise TerminationError()
        return TERMINATED
