"""Abstract portal API interface."""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from ..models import (
    Attachment,
    AuthResult,
    CaptchaChallenge,
    ComplaintTypeInfo,
    GuestSession,
    TrackingResult,
    Ward,
)


class PortalApi(ABC):
    """Abstract interface for the portal REST backend."""

    @abstractmethod
    async def get_captcha(self) -> CaptchaChallenge:
        """Request a new CAPTCHA challenge."""
        pass

    @abstractmethod
    async def submit_guest_complaint(
        self, fields: dict[str, str], captcha_id: str, captcha_text: str
    ) -> GuestSession:
        """Start a guest submission. The server emails an OTP."""
        pass

    @abstractmethod
    async def verify_guest_otp(
        self,
        email: str,
        otp_code: str,
        fields: dict[str, str],
        attachments: Sequence[Attachment],
    ) -> AuthResult:
        """Submit the complete complaint together with the OTP code."""
        pass

    @abstractmethod
    async def resend_guest_otp(self, email: str, complaint_id: Optional[str] = None) -> GuestSession:
        """Request a fresh code for the same email."""
        pass

    @abstractmethod
    async def get_wards(self) -> list[Ward]:
        """Get the public ward list with embedded sub-zones."""
        pass

    @abstractmethod
    async def get_complaint_types(self) -> list[ComplaintTypeInfo]:
        """Get the public complaint type catalog."""
        pass

    @abstractmethod
    async def track_complaint(
        self,
        complaint_id: str,
        email: Optional[str] = None,
        phone_number: Optional[str] = None,
    ) -> TrackingResult:
        """Look up a complaint's public status."""
        pass
