"""Core utilities shared across the HTTP service layer."""

from .logging import get_logger, setup_logging


__all__ = ["get_logger", "setup_logging"]
