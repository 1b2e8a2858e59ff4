"""Plugin system for HTTP services."""

from .base import AbstractPlugin, PluginState
from .host import PluginHost
from .http import HTTPServicePlugin


__all__ = [
    "AbstractPlugin",
    "HTTPServicePlugin",
    "PluginHost",
    "PluginState",
]
