"""Exception hierarchy for the complaint workflow."""

import re
from typing import Optional

GENERIC_FAILURE_MESSAGE = "Request failed, please try again"

_EXPIRED_RE = re.compile(r"\bexpired\b", re.IGNORECASE)
_INVALID_RE = re.compile(r"\binvalid\b", re.IGNORECASE)


class PortalError(Exception):
    """Base class for all workflow errors."""

    @property
    def user_message(self) -> str:
        return str(self) or GENERIC_FAILURE_MESSAGE


class ValidationFailed(PortalError):
    """Client-detected problem. Never sent to the network."""

    def __init__(self, errors: dict[str, str], message: Optional[str] = None):
        self.errors = dict(errors)
        super().__init__(message or next(iter(self.errors.values()), "Invalid input"))


class TransportError(PortalError):
    """Network failure or a non-2xx response without a structured body."""

    def __init__(self, details: str = "", status: Optional[int] = None):
        super().__init__(GENERIC_FAILURE_MESSAGE)
        self.details = details
        self.status = status


class DomainError(PortalError):
    """Structured rejection reported by the server."""

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.code = code

    @property
    def is_expired(self) -> bool:
        """True when the server says the code (not merely a wrong one) expired."""
        if self.code and self.code.upper() in ("OTP_EXPIRED", "EXPIRED"):
            return True
        message = str(self)
        return bool(_EXPIRED_RE.search(message)) and not _INVALID_RE.search(message)


class StateError(PortalError):
    """An operation was attempted in a state that does not allow it."""


def describe(exc: BaseException) -> str:
    """Normalize any error into a single user-facing string."""
    if isinstance(exc, PortalError):
        return exc.user_message
    return GENERIC_FAILURE_MESSAGE
