"""End-to-end tests running the example plugin in a FastAPI application."""

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from typer.testing import CliRunner

from examples.basic.plugin import MyServicePlugin
from http_service.app import create_app
from http_service.cli import app as cli_app
from http_service.config import Settings


pytestmark = pytest.mark.integration


class TestAlpha:
    def test_returns_fake_data(self, example_client: TestClient) -> None:
        response = example_client.get("/alpha")

        assert response.status_code == 200
        assert response.json() == {"fake": "data"}

    def test_wrong_method(self, example_client: TestClient) -> None:
        assert example_client.post("/alpha").status_code == 405


class TestBravo:
    def test_steps_complete(self, example_client: TestClient) -> None:
        response = example_client.get("/bravo")

        assert response.status_code == 200
        assert response.text == "asynchronously"

    def test_validation_failure(self, example_client: TestClient) -> None:
        response = example_client.get("/bravo", params={"fail": "validation"})

        assert response.status_code == 400
        assert response.headers["cache-control"] == "no-store"
        assert response.headers["pragma"] == "no-cache"
        assert response.json() == {
            "error": "invalid_request",
            "error_description": "fail must not be 'validation'",
        }

    def test_unexpected_failure(self, example_client: TestClient) -> None:
        response = example_client.get("/bravo", params={"fail": "crash"})

        assert response.status_code == 500
        assert response.content == b""


class TestCharlie:
    def test_missing_token(self, example_client: TestClient) -> None:
        response = example_client.get("/charlie/1")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == (
            "Bearer realm=charlie error=invalid_token "
            "error_description=token missing or invalid"
        )
        assert response.content == b""

    def test_found(self, example_client: TestClient) -> None:
        response = example_client.get("/charlie/1", headers={"Authorization": "Bearer secret"})

        assert response.status_code == 200
        assert response.json() == {"id": "1", "name": "first"}

    def test_not_found(self, example_client: TestClient) -> None:
        response = example_client.get("/charlie/2", headers={"Authorization": "Bearer secret"})

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_delete(self, example_client: TestClient) -> None:
        response = example_client.delete(
            "/charlie/1", headers={"Authorization": "Bearer secret"}
        )

        assert response.status_code == 204
        assert response.content == b""


class TestStatus:
    def test_shares_parent_context(self, example_client: TestClient) -> None:
        response = example_client.get("/status")

        assert response.status_code == 200
        assert response.headers["cache-control"] == "no-store"
        assert response.json() == {"status": "ok", "service": "status", "parent": "MyService"}

    def test_head(self, example_client: TestClient) -> None:
        response = example_client.head("/status")

        assert response.status_code == 200

    def test_status_service_reads_settings_through_parent(self, example_app: FastAPI) -> None:
        host = example_app.state.plugin_host
        host.start_all()
        try:
            status = host.injector.get("my:http:status")
            assert status.settings is example_app.state.settings
            assert status.settings.default_realm == "example"
            assert status.shared is host.injector.get("my:http:service")
        finally:
            host.stop_all()


class TestLifespan:
    def test_routes_only_while_running(self, example_app: FastAPI) -> None:
        server = example_app.state.server
        baseline = list(server.routes)

        with TestClient(example_app) as client:
            assert len(server.mounted()) == 2
            assert client.get("/alpha").status_code == 200

        assert server.mounted() == []
        assert server.routes == baseline

    def test_disabled_plugin_mounts_nothing(self) -> None:
        app = create_app(Settings(disabled_plugins=["my_service"]), [MyServicePlugin])

        with TestClient(app) as client:
            assert client.get("/alpha").status_code == 404
        assert app.state.plugin_host.plugins == []

    async def test_asgi_transport(self, example_app: FastAPI) -> None:
        host = example_app.state.plugin_host
        host.start_all()
        try:
            transport = httpx.ASGITransport(app=example_app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
                response = await client.get("/alpha")
        finally:
            host.stop_all()

        assert response.json() == {"fake": "data"}


class TestCLI:
    def test_routes_command(self) -> None:
        result = CliRunner().invoke(cli_app, ["routes", "examples.basic.plugin:MyServicePlugin"])

        assert result.exit_code == 0, result.output
        assert "/alpha" in result.output
        assert "/status" in result.output

    def test_invalid_plugin(self) -> None:
        result = CliRunner().invoke(cli_app, ["routes", "examples.basic.plugin"])

        assert result.exit_code != 0

    def test_version(self) -> None:
        result = CliRunner().invoke(cli_app, ["--version"])

        assert result.exit_code == 0
        assert result.output.startswith("http-service ")
