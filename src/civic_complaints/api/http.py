"""REST implementation of the portal API using requests."""

import asyncio
import contextlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Iterator, Optional, Sequence

import requests

from ..config.settings import ApiSettings
from ..errors import DomainError, TransportError
from ..models import (
    Attachment,
    AuthResult,
    CaptchaChallenge,
    ComplaintTypeInfo,
    GuestSession,
    TrackingResult,
    User,
    Ward,
)
from .base import PortalApi

logger = logging.getLogger(__name__)


def require(data: Any, key: str) -> Any:
    """Return a non-empty field of a response payload, or raise KeyError."""
    value = data[key]
    if value in (None, ""):
        raise KeyError(key)
    return value


@contextlib.contextmanager
def malformed_payload(method: str, path: str) -> Iterator[None]:
    """Turn parsing errors on a 2xx payload into a TransportError."""
    try:
        yield
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.warning("%s %s returned a malformed payload: %r", method, path, e)
        raise TransportError(f"Malformed response payload: {e!r}") from e


def parse_timestamp(value: Optional[str], default_ttl: int = 600) -> datetime:
    """Parse a server ISO timestamp into an aware datetime."""
    if not value:
        return datetime.now(timezone.utc) + timedelta(seconds=default_ttl)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class HttpPortalApi(PortalApi):
    """Portal backend reached over HTTP.

    Blocking ``requests`` calls run in a worker thread so that callers can
    await them from the event loop.
    """

    def __init__(
        self,
        settings: ApiSettings,
        session: Optional[requests.Session] = None,
        default_ttl: int = 600,
    ):
        self.settings = settings
        self.default_ttl = default_ttl
        self.base_url = settings.base_url.rstrip("/")
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                timeout=self.settings.timeout_seconds,
                verify=self.settings.verify_ssl,
                **kwargs,
            )
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise TransportError(str(e)) from e
        return self._unwrap(response, method, path)

    @staticmethod
    def _unwrap(response: requests.Response, method: str, path: str) -> Any:
        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.ok:
            logger.info("%s %s -> HTTP %s", method, path, response.status_code)
            if isinstance(body, dict) and body.get("message"):
                raise DomainError(body["message"], response.status_code, body.get("code"))
            raise TransportError(f"HTTP {response.status_code}", response.status_code)

        if not isinstance(body, dict):
            raise TransportError("Server returned unexpected response format", response.status_code)
        if body.get("success") is False:
            raise DomainError(
                body.get("message") or "Request was rejected",
                response.status_code,
                body.get("code"),
            )
        return body.get("data") or {}

    async def _call(self, method: str, path: str, **kwargs) -> Any:
        return await asyncio.to_thread(self._request, method, path, **kwargs)

    async def get_captcha(self) -> CaptchaChallenge:
        data = await self._call("GET", "/captcha/generate")
        with malformed_payload("GET", "/captcha/generate"):
            return CaptchaChallenge(
                captcha_id=require(data, "captchaId"),
                captcha_svg=data.get("captchaSvg", ""),
            )

    async def submit_guest_complaint(
        self, fields: dict[str, str], captcha_id: str, captcha_text: str
    ) -> GuestSession:
        payload = {**fields, "captchaId": captcha_id, "captchaText": captcha_text}
        data = await self._call("POST", "/guest/complaint", data=payload)
        with malformed_payload("POST", "/guest/complaint"):
            return GuestSession(
                session_id=data.get("sessionId") or data.get("complaintId", ""),
                email=data.get("email") or fields.get("email", ""),
                expires_at=parse_timestamp(data.get("expiresAt"), self.default_ttl),
            )

    async def verify_guest_otp(
        self,
        email: str,
        otp_code: str,
        fields: dict[str, str],
        attachments: Sequence[Attachment],
    ) -> AuthResult:
        payload = {**fields, "email": email, "otpCode": otp_code}
        files = [
            ("attachments", (a.filename, a.content, a.content_type))
            for a in attachments
        ]
        data = await self._call("POST", "/guest/verify-otp", data=payload, files=files or None)
        with malformed_payload("POST", "/guest/verify-otp"):
            return AuthResult(
                token=require(data, "token"),
                user=User.from_api(data.get("user") or {}),
                is_new_user=bool(data.get("isNewUser", False)),
                complaint=data.get("complaint"),
            )

    async def resend_guest_otp(self, email: str, complaint_id: Optional[str] = None) -> GuestSession:
        payload = {"email": email}
        if complaint_id:
            payload["complaintId"] = complaint_id
        data = await self._call("POST", "/guest/resend-otp", json=payload)
        with malformed_payload("POST", "/guest/resend-otp"):
            return GuestSession(
                session_id=data.get("sessionId", ""),
                email=email,
                expires_at=parse_timestamp(data.get("expiresAt"), self.default_ttl),
            )

    async def get_wards(self) -> list[Ward]:
        data = await self._call("GET", "/guest/wards")
        with malformed_payload("GET", "/guest/wards"):
            return [Ward.from_api(item) for item in data or [] if item.get("isActive", True)]

    async def get_complaint_types(self) -> list[ComplaintTypeInfo]:
        data = await self._call("GET", "/guest/complaint-types")
        with malformed_payload("GET", "/guest/complaint-types"):
            return [
                ComplaintTypeInfo(id=item["id"], name=item.get("name", item["id"]), priority=item.get("priority"))
                for item in data or []
            ]

    async def track_complaint(
        self,
        complaint_id: str,
        email: Optional[str] = None,
        phone_number: Optional[str] = None,
    ) -> TrackingResult:
        params = {}
        if email:
            params["email"] = email
        if phone_number:
            params["phoneNumber"] = phone_number
        path = f"/guest/track/{complaint_id}"
        data = await self._call("GET", path, params=params)
        with malformed_payload("GET", path):
            return TrackingResult(complaint=data.get("complaint") or {}, history=data.get("history") or [])
