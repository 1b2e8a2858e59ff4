"""Tests for BaseRequest terminal helpers and step chains."""

import json
from collections.abc import Callable
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import pytest
from starlette.requests import Request

from http_service import (
    TERMINATED,
    BadRequestError,
    BaseRequest,
    HTTPServer,
    NotFoundError,
    ResponseSink,
    TerminationError,
    UnauthorizedError,
)
from tests.fixtures.services import EchoService


@pytest.fixture
def request_obj(
    make_request: Callable[..., Request], echo_service: EchoService
) -> BaseRequest:
    return BaseRequest(make_request(), ResponseSink(), echo_service)


def body_of(res: ResponseSink) -> Any:
    response = res.to_response()
    assert response is not None
    return json.loads(response.body) if response.body else None


class TestUnauthorized:
    def test_challenge_without_description(self, request_obj: BaseRequest) -> None:
        err = {"realm": "api", "error": "invalid_token"}

        with pytest.raises(TerminationError):
            request_obj.unauthorized(err)

        response = request_obj.res.to_response()
        assert response is not None
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer realm=api error=invalid_token "
        assert response.body == b""

    def test_challenge_with_description(self, request_obj: BaseRequest) -> None:
        err = UnauthorizedError("token expired", realm="api")

        assert request_obj.challenge(err) == (
            "Bearer realm=api error=invalid_token error_description=token expired"
        )

    def test_realm_defaults_to_user(self, request_obj: BaseRequest) -> None:
        assert request_obj.challenge({"error": "invalid_token"}) == (
            "Bearer realm=user error=invalid_token "
        )

    def test_realm_defaults_to_settings(
        self, make_request: Callable[..., Request], server: HTTPServer
    ) -> None:
        settings = SimpleNamespace(default_realm="internal")
        service = EchoService.create(None, {"server": server, "settings": settings})
        request = BaseRequest(make_request(), ResponseSink(), service)

        assert request.challenge({}) == "Bearer realm=internal "

    def test_error_falls_back_to_message(self, request_obj: BaseRequest) -> None:
        assert request_obj.challenge({"message": "nope"}) == "Bearer realm=user error=nope "
        assert request_obj.challenge(ValueError("bad")) == "Bearer realm=user error=bad "

    def test_not_promised_returns_terminated(self, request_obj: BaseRequest) -> None:
        assert request_obj.unauthorized({}, promised=False) is TERMINATED
        assert request_obj.res.sent


    async def test_non_latin_description_is_percent_encoded(
        self, request_obj: BaseRequest
    ) -> None:
        def reject() -> None:
            request_obj.unauthorized(UnauthorizedError("токен недействителен", realm="api"))

        await request_obj.run(reject)

        response = request_obj.res.to_response()
        assert response is not None
        assert response.status_code == 401
        challenge = response.headers["WWW-Authenticate"]
        assert challenge.isascii()
        assert challenge.startswith(
            "Bearer realm=api error=invalid_token "
            "error_description=%D1%82%D0%BE%D0%BA%D0%B5%D0%BD %D0%BD"
        )

    def test_percent_sign_is_encoded(self, request_obj: BaseRequest) -> None:
        assert request_obj.challenge({"realm": "100%"}) == "Bearer realm=100%25 "

class TestBadRequest:
    def test_body_and_no_cache_headers(
        self, request_obj: BaseRequest, mock_logger: MagicMock
    ) -> None:
        with pytest.raises(TerminationError):
            request_obj.bad_request(BadRequestError("name is required"))

        response = request_obj.res.to_response()
        assert response is not None
        assert response.status_code == 400
        assert response.headers["Cache-Control"] == "no-store"
        assert response.headers["Pragma"] == "no-cache"
        assert body_of(request_obj.res) == {
            "error": "invalid_request",
            "error_description": "name is required",
        }
        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args.args == ("bad_request",)
        assert mock_logger.error.call_args.kwargs["status_code"] == 400

    def test_mapping_sent_as_is(self, request_obj: BaseRequest) -> None:
        request_obj.bad_request({"error": "custom", "field": "x"}, promised=False)

        assert body_of(request_obj.res) == {"error": "custom", "field": "x"}

    def test_plain_exception(
        self, request_obj: BaseRequest, mock_logger: MagicMock
    ) -> None:
        request_obj.bad_request(ValueError("broken input"), promised=False)

        expected = {"error": "invalid_request", "error_description": "broken input"}
        assert body_of(request_obj.res) == expected
        assert mock_logger.error.call_args.kwargs["error"] == expected

    def test_without_log_dependency(
        self, make_request: Callable[..., Request], server: HTTPServer
    ) -> None:
        service = EchoService.create(None, {"server": server})
        request = BaseRequest(make_request(), ResponseSink(), service)

        assert request.bad_request({"error": "x"}, promised=False) is TERMINATED
        assert request.res.status_code == 400


class TestNotFound:
    def test_body_and_headers(self, request_obj: BaseRequest) -> None:
        with pytest.raises(TerminationError):
            request_obj.not_found(NotFoundError("no such item"))

        response = request_obj.res.to_response()
        assert response is not None
        assert response.status_code == 404
        assert response.headers["Cache-Control"] == "no-store"
        assert body_of(request_obj.res) == {
            "error": "not_found",
            "error_description": "no such item",
        }

    def test_plain_exception_logged_as_sent(
        self, request_obj: BaseRequest, mock_logger: MagicMock
    ) -> None:
        request_obj.not_found(KeyError("gone"), promised=False)

        assert mock_logger.error.call_args.args == ("not_found",)
        assert mock_logger.error.call_args.kwargs["error"] == body_of(request_obj.res)
        assert body_of(request_obj.res)["error"] == "not_found"


class TestNoContent:
    def test_promised(self, request_obj: BaseRequest) -> None:
        with pytest.raises(TerminationError):
            request_obj.no_content()

        response = request_obj.res.to_response()
        assert response is not None
        assert response.status_code == 204
        assert response.body == b""

    def test_not_promised(self, request_obj: BaseRequest) -> None:
        assert request_obj.no_content(promised=False) is TERMINATED


class TestInternalServerError:
    def test_logs_and_sends_500(
        self, request_obj: BaseRequest, mock_logger: MagicMock
    ) -> None:
        err = RuntimeError("kaboom")

        request_obj.internal_server_error(err)

        response = request_obj.res.to_response()
        assert response is not None
        assert response.status_code == 500
        assert response.body == b""
        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args.args == ("internal_server_error",)
        assert mock_logger.error.call_args.kwargs["error"] == "kaboom"
        assert mock_logger.error.call_args.kwargs["exc_info"] is err

    def test_unencodable_header_does_not_escape(
        self, request_obj: BaseRequest, mock_logger: MagicMock
    ) -> None:
        request_obj.res.headers["X-Note"] = "✓"

        request_obj.internal_server_error(RuntimeError("x"))

        response = request_obj.res.to_response()
        assert response is not None
        assert response.status_code == 500
        assert "x-note" not in response.headers
        mock_logger.error.assert_called_once()

    def test_after_response_sent_only_logs(
        self, request_obj: BaseRequest, mock_logger: MagicMock
    ) -> None:
        request_obj.res.json({"ok": True})

        request_obj.internal_server_error(RuntimeError("late"))

        assert request_obj.res.status_code == 200
        assert body_of(request_obj.res) == {"ok": True}
        mock_logger.error.assert_called_once()


class TestError:
    def test_termination_is_swallowed(
        self, request_obj: BaseRequest, mock_logger: MagicMock
    ) -> None:
        request_obj.error(TerminationError())

        assert not request_obj.res.sent
        mock_logger.error.assert_not_called()

    def test_other_errors_become_500(self, request_obj: BaseRequest) -> None:
        request_obj.error(KeyError("missing"))

        assert request_obj.res.status_code == 500


class TestRun:
    async def test_steps_run_in_order(self, request_obj: BaseRequest) -> None:
        calls: list[str] = []

        async def first() -> None:
            calls.append("first")

        def second() -> None:
            calls.append("second")
            request_obj.res.send("done")

        await request_obj.run(first, second)

        assert calls == ["first", "second"]
        response = request_obj.res.to_response()
        assert response is not None
        assert response.body == b"done"

    async def test_terminal_helper_stops_chain(
        self, request_obj: BaseRequest, mock_logger: MagicMock
    ) -> None:
        calls: list[str] = []

        def reject() -> None:
            calls.append("reject")
            request_obj.bad_request(BadRequestError("stop here"))

        def unreachable() -> None:
            calls.append("unreachable")

        await request_obj.run(reject, unreachable)

        assert calls == ["reject"]
        assert request_obj.res.status_code == 400
        assert mock_logger.error.call_args.args == ("bad_request",)

    async def test_terminated_result_stops_chain(self, request_obj: BaseRequest) -> None:
        calls: list[str] = []

        def finish() -> Any:
            calls.append("finish")
            return request_obj.no_content(promised=False)

        def unreachable() -> None:
            calls.append("unreachable")

        await request_obj.run(finish, unreachable)

        assert calls == ["finish"]
        assert request_obj.res.status_code == 204

    async def test_unexpected_failure_becomes_500(
        self, request_obj: BaseRequest, mock_logger: MagicMock
    ) -> None:
        async def crash() -> None:
            raise RuntimeError("crash")

        await request_obj.run(crash)

        assert request_obj.res.status_code == 500
        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args.args == ("internal_server_error",)

    async def test_failure_after_send_keeps_first_response(
        self, request_obj: BaseRequest
    ) -> None:
        def respond() -> None:
            request_obj.res.json({"ok": True})

        def crash() -> None:
            raise RuntimeError("too late")

        await request_obj.run(respond, crash)

        assert request_obj.res.status_code == 200
        assert body_of(request_obj.res) == {"ok": True}


def test_default_handle_is_not_implemented(
    make_request: Callable[..., Request], echo_service: EchoService
) -> None:
    with pytest.raises(NotImplementedError):
        BaseRequest.handle(make_request(), ResponseSink(), echo_service)
