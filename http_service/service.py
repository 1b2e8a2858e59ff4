"""HTTP service: a mountable, injectable set of request handlers."""

import inspect
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Self

import structlog
from fastapi import APIRouter, Depends
from starlette.requests import Request
from starlette.responses import Response

from http_service.errors import DependencyInjectionError, TerminationError
from http_service.response import ResponseSink
from http_service.routing import RequestHandler, Route, load_handlers
from http_service.server import HTTPServer


logger = structlog.get_logger(__name__)


class HTTPService(ABC):
    """Base class for services.

    A service carries plain data fields, read-only injected dependencies and
    an optional shared parent whose dependencies it reads through by live
    reference. Its router is derived once from :attr:`handlers`.

    Example::

        class MyService(HTTPService):
            handlers = HTTPService.load_handlers()

        service = MyService.create({"name": "demo"}, {"server": server, "log": log})
        service.mount()
    """

    load_handlers = staticmethod(load_handlers)

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._dependencies: dict[str, Any] = {}
        self._forwarded: tuple[str, ...] = ()
        self._shared: HTTPService | None = None
        self._router: APIRouter | None = None
        self._router_key = f"{type(self).__name__}:{uuid.uuid4().hex}"

        for key, value in (data or {}).items():
            setattr(self, key, value)

    @classmethod
    def create(
        cls,
        data: Mapping[str, Any] | None = None,
        dependencies: Mapping[str, Any] | None = None,
    ) -> Self:
        """Instantiate, apply ``data``, then inject ``dependencies``."""
        service = cls(data)
        service.inject(dependencies or {})
        return service

    @classmethod
    def with_shared(
        cls,
        shared: "HTTPService",
        data: Mapping[str, Any] | None = None,
        dependencies: Mapping[str, Any] | None = None,
    ) -> Self:
        """Like :meth:`create`, additionally reading ``shared``'s dependencies.

        Every dependency known to ``shared`` at this point is forwarded: reads
        on the new service always return the value ``shared`` currently holds.
        """
        service = cls.create(data, dependencies)
        service._bind_shared(shared)
        return service

    @property
    @abstractmethod
    def handlers(self) -> Sequence[type[RequestHandler]]:
        """Handler classes routed by this service."""
        raise NotImplementedError("Handlers must be defined for subclass")

    @property
    def dependencies(self) -> tuple[str, ...]:
        """Names injected directly on this service, in injection order."""
        return tuple(self._dependencies)

    @property
    def shared_dependencies(self) -> tuple[str, ...]:
        """Names read through from the shared service."""
        return self._forwarded

    @property
    def shared(self) -> "HTTPService | None":
        return self._shared

    @property
    def router_key(self) -> str:
        return self._router_key

    def inject(self, dependencies: Mapping[str, Any]) -> None:
        """Bind read-only dependencies.

        All keys are validated before any is bound.

        Raises:
            DependencyInjectionError: If a key is already injected or forwarded,
                or collides with a data field or class attribute
        """
        for key in dependencies:
            self._check_available(key)
        self._dependencies.update(dependencies)

    def has_dependency(self, key: str) -> bool:
        return key in self._dependencies or (
            key in self._forwarded and self._shared is not None
        )

    def get_dependency(self, key: str) -> Any:
        """Read a dependency, forwarding to the shared service when needed."""
        if key in self._dependencies:
            return self._dependencies[key]
        if key in self._forwarded and self._shared is not None:
            return self._shared.get_dependency(key)
        raise DependencyInjectionError(
            f"Dependency {key!r} is not injected on {type(self).__name__}"
        )

    @property
    def router(self) -> APIRouter:
        """Dispatch table derived from :attr:`handlers`, built on first access."""
        if self._router is None:
            self._router = self._build_router()
        return self._router

    def mount(self) -> None:
        """Install this service's router on the injected ``server``."""
        server: HTTPServer = self.get_dependency("server")
        if server.is_mounted(self._router_key):
            logger.debug("service_already_mounted", service=type(self).__name__)
            return

        server.use(self.router, key=self._router_key)
        logger.info(
            "service_mounted",
            service=type(self).__name__,
            router=self._router_key,
            routes=len(self.router.routes),
        )

    def unmount(self) -> None:
        """Remove exactly this service's router. No-op when not mounted."""
        if not self.has_dependency("server"):
            return

        server: HTTPServer = self.get_dependency("server")
        if server.remove(self._router_key):
            logger.info(
                "service_unmounted", service=type(self).__name__, router=self._router_key
            )

    def to_dict(self) -> dict[str, Any]:
        """Data fields only; dependencies and internals are left out."""
        return {key: value for key, value in vars(self).items() if not key.startswith("_")}

    def __getattr__(self, name: str) -> Any:
        # only reached when normal lookup fails
        if not name.startswith("_") and self.has_dependency(name):
            return self.get_dependency(name)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        if self._is_dependency(name):
            raise DependencyInjectionError(f"Dependency {name!r} is read-only")
        super().__setattr__(name, value)

    def __delattr__(self, name: str) -> None:
        if self._is_dependency(name):
            raise DependencyInjectionError(f"Dependency {name!r} is read-only")
        super().__delattr__(name)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(router_key={self._router_key!r}, "
            f"dependencies={[*self.dependencies, *self.shared_dependencies]!r})"
        )

    def _is_dependency(self, name: str) -> bool:
        return name in self.__dict__.get("_dependencies", {}) or name in self.__dict__.get(
            "_forwarded", ()
        )

    def _check_available(self, key: str) -> None:
        if not key.isidentifier() or key.startswith("_"):
            raise DependencyInjectionError(f"Invalid dependency name {key!r}")
        if self._is_dependency(key):
            raise DependencyInjectionError(f"Dependency {key!r} is already defined")
        if key in self.__dict__ or hasattr(type(self), key):
            raise DependencyInjectionError(
                f"Dependency {key!r} collides with an attribute of {type(self).__name__}"
            )

    def _bind_shared(self, shared: "HTTPService") -> None:
        keys = tuple(dict.fromkeys((*shared.dependencies, *shared.shared_dependencies)))
        for key in keys:
            self._check_available(key)
        self._forwarded = keys
        self._shared = shared

    def _build_router(self) -> APIRouter:
        router = APIRouter()

        for handler in self.handlers:
            route = Route.coerce(handler.route)
            dependencies = [Depends(middleware) for middleware in route.middleware]

            for verb in route.verbs:
                router.add_api_route(
                    route.path,
                    self._dispatch_entry(handler),
                    methods=[verb],
                    name=f"{handler.__name__}.{verb.lower()}",
                    dependencies=dependencies,
                    response_model=None,
                )

        logger.debug(
            "service_router_built",
            service=type(self).__name__,
            routes=[(route.path, sorted(route.methods)) for route in router.routes],  # type: ignore[attr-defined]
        )
        return router

    def _dispatch_entry(
        self, handler: type[RequestHandler]
    ) -> Callable[[Request], Any]:
        service = self

        async def endpoint(request: Request) -> Response:
            response = ResponseSink()
            try:
                result = handler.handle(request, response, service)
                if inspect.isawaitable(result):
                    await result
            except TerminationError:
                pass

            sent = response.to_response()
            if sent is None:
                logger.error(
                    "handler_sent_no_response",
                    handler=handler.__name__,
                    method=request.method,
                    path=request.url.path,
                )
                return Response(status_code=500)
            return sent

        endpoint.__name__ = handler.__name__
        return endpoint
