"""Portal API factory."""

from ..config.settings import Settings
from .base import PortalApi
from .http import HttpPortalApi


def create_api(settings: Settings) -> PortalApi:
    """Create the HTTP portal API.

    Args:
        settings: Application settings

    Returns:
        A ready-to-use PortalApi

    Raises:
        ValueError: If the API base URL is not configured
    """
    if not settings.api.is_configured:
        raise ValueError("API_BASE_URL must be set in environment")

    return HttpPortalApi(settings.api, default_ttl=settings.otp.expiry_seconds)
