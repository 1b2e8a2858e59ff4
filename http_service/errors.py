"""Exceptions for the HTTP service layer."""

from typing import Any


class TerminationError(Exception):
    """Abort the in-flight handling chain; a response has already been sent."""


class HTTPServiceError(Exception):
    """Base exception for HTTP service errors."""


class ConfigurationError(HTTPServiceError):
    """Wiring-time error. Raised during construction or startup, never per request."""


class DependencyInjectionError(ConfigurationError):
    """A dependency key was injected twice, collides, or cannot be resolved."""


class RouteConfigurationError(ConfigurationError):
    """A handler declares an unusable route."""


class HandlerDiscoveryError(ConfigurationError):
    """Handler modules could not be located or imported."""


class PluginStateError(ConfigurationError):
    """A plugin lifecycle operation was called in the wrong state."""


class ResponseAlreadySentError(HTTPServiceError):
    """A second response was written for the same request."""


class RequestError(HTTPServiceError):
    """Client-correctable error carried into a 4xx response body."""

    default_error = "invalid_request"

    def __init__(
        self,
        error_description: str | None = None,
        error: str | None = None,
        realm: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(error_description or error or self.default_error)
        self.error = error or self.default_error
        self.error_description = error_description
        self.realm = realm
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"error": self.error}
        if self.error_description:
            data["error_description"] = self.error_description
        if self.details:
            data["details"] = self.details
        return data


class BadRequestError(RequestError):
    """Bad request (400)."""

    default_error = "invalid_request"


class UnauthorizedError(RequestError):
    """Unauthorized (401)."""

    default_error = "invalid_token"


class NotFoundError(RequestError):
    """Not found (404)."""

    default_error = "not_found"
