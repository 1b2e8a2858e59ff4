"""Configuration module for HTTP service applications."""

from .logging import LoggingSettings
from .server import ServerSettings
from .settings import Settings, get_settings


__all__ = ["Settings", "get_settings", "LoggingSettings", "ServerSettings"]
