"""Mountable, injectable HTTP services for FastAPI applications."""

from ._version import __version__
from .container import Injector
from .errors import (
    BadRequestError,
    ConfigurationError,
    DependencyInjectionError,
    HandlerDiscoveryError,
    HTTPServiceError,
    NotFoundError,
    PluginStateError,
    RequestError,
    ResponseAlreadySentError,
    RouteConfigurationError,
    TerminationError,
    UnauthorizedError,
)
from .plugins import AbstractPlugin, HTTPServicePlugin, PluginHost, PluginState
from .request import TERMINATED, BaseRequest
from .response import ResponseSink
from .routing import RequestHandler, Route, load_handlers
from .server import HTTPServer
from .service import HTTPService


__all__ = [
    "__version__",
    "AbstractPlugin",
    "BadRequestError",
    "BaseRequest",
    "ConfigurationError",
    "DependencyInjectionError",
    "HandlerDiscoveryError",
    "HTTPServer",
    "HTTPService",
    "HTTPServiceError",
    "HTTPServicePlugin",
    "Injector",
    "NotFoundError",
    "PluginHost",
    "PluginState",
    "PluginStateError",
    "RequestError",
    "RequestHandler",
    "ResponseAlreadySentError",
    "ResponseSink",
    "Route",
    "RouteConfigurationError",
    "TERMINATED",
    "TerminationError",
    "UnauthorizedError",
    "load_handlers",
]
