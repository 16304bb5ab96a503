"""Application configuration."""

from .settings import Settings, configure_logging

__all__ = ["Settings", "configure_logging"]
