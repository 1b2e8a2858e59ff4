from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .logging import LoggingSettings
from .server import ServerSettings


__all__ = ["Settings", "get_settings"]


class Settings(BaseSettings):
    """
    Configuration settings for HTTP service applications.

    Settings are loaded from environment variables prefixed with
    ``HTTP_SERVICE_`` and from a ``.env`` file. Nested values use ``__``,
    e.g. ``HTTP_SERVICE_SERVER__PORT=9000``.
    """

    model_config = SettingsConfigDict(
        env_prefix="HTTP_SERVICE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    server: ServerSettings = Field(
        default_factory=ServerSettings,
        description="Server configuration settings",
    )

    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration",
    )

    default_realm: str = Field(
        default="user",
        description="Realm used in WWW-Authenticate challenges when the error carries none",
    )

    enabled_plugins: list[str] | None = Field(
        default=None,
        description="List of explicitly enabled plugins (None = all enabled). Takes precedence over disabled_plugins.",
    )

    disabled_plugins: list[str] | None = Field(
        default=None,
        description="List of explicitly disabled plugins.",
    )

    @property
    def server_url(self) -> str:
        """Get the complete server URL."""
        return f"http://{self.server.host}:{self.server.port}"

    def is_plugin_enabled(self, plugin_name: str) -> bool:
        """Check a plugin name against the enabled/disabled lists."""
        if self.enabled_plugins is not None:
            return plugin_name in self.enabled_plugins
        return plugin_name not in (self.disabled_plugins or [])


@lru_cache
def get_settings() -> Settings:
    """Get the cached application settings."""
    return Settings()
