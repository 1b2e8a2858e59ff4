"""Transport handle: installs and removes routers on a FastAPI application."""

import threading
import uuid

import structlog
from fastapi import APIRouter, FastAPI
from starlette.routing import BaseRoute


logger = structlog.get_logger(__name__)


class HTTPServer:
    """Router registry on top of a FastAPI application.

    Every installed router is tracked under a stable key together with the
    exact route objects it contributed, so removal never depends on list
    positions and never touches routes installed by someone else.
    """

    def __init__(self, app: FastAPI | None = None) -> None:
        self.app = app or FastAPI()
        self._mounted: dict[str, list[BaseRoute]] = {}
        self._lock = threading.RLock()

    @property
    def routes(self) -> list[BaseRoute]:
        return self.app.router.routes

    def use(self, router: APIRouter, key: str | None = None) -> str:
        """Install ``router`` and return the key it is registered under.

        Raises:
            ValueError: If ``key`` is already in use
        """
        key = key or uuid.uuid4().hex
        with self._lock:
            if key in self._mounted:
                raise ValueError(f"Router {key!r} is already mounted")

            installed = list(router.routes)
            self.routes.extend(installed)
            self._mounted[key] = installed
            self.app.openapi_schema = None

        logger.debug("router_mounted", router=key, routes=len(installed))
        return key

    def remove(self, key: str) -> bool:
        """Remove the routes installed under ``key``.

        Returns:
            False if nothing is mounted under ``key``
        """
        with self._lock:
            installed = self._mounted.pop(key, None)
            if installed is None:
                return False

            installed_ids = {id(route) for route in installed}
            self.routes[:] = [route for route in self.routes if id(route) not in installed_ids]
            self.app.openapi_schema = None

        logger.debug("router_unmounted", router=key, routes=len(installed))
        return True

    def is_mounted(self, key: str) -> bool:
        return key in self._mounted

    def mounted(self) -> list[str]:
        """Keys of installed routers in mount order."""
        return list(self._mounted)

    def installed(self, key: str) -> list[BaseRoute]:
        """Routes installed under ``key`` (empty when not mounted)."""
        return list(self._mounted.get(key, ()))
