"""Portal backend access."""

from .base import PortalApi
from .factory import create_api
from .http import HttpPortalApi

__all__ = [
    "PortalApi",
    "HttpPortalApi",
    "create_api",
]
