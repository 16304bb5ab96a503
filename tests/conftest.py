"""Shared fixtures: a scriptable portal API and a controllable clock."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

import pytest

from civic_complaints.api.base import PortalApi
from civic_complaints.attachments import AttachmentManager, FileInput
from civic_complaints.captcha import CaptchaGate
from civic_complaints.models import (
    Attachment,
    AuthResult,
    CaptchaChallenge,
    ComplaintTypeInfo,
    GuestSession,
    SubZone,
    TrackingResult,
    User,
    Ward,
)
from civic_complaints.repository import MemoryDraftRepository
from civic_complaints.state_machine import SubmissionStateMachine
from civic_complaints.store import FormStore
from civic_complaints.validation import GUEST_POLICY
from civic_complaints.wards import WardDirectory

START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakePortalApi(PortalApi):
    """In-memory portal. Results may be exceptions; gates hold calls open."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.calls: list[tuple[str, dict]] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.captcha_count = 0
        self.intake_result = None
        self.verify_result = None
        self.resend_result = None
        self.wards = [
            Ward(id="ward-1", name="Ward 1"),
            Ward(id="ward-2", name="Ward 2", sub_zones=[SubZone("sz-1", "North"), SubZone("sz-2", "South")]),
        ]
        self.complaint_types = [
            ComplaintTypeInfo("WATER_SUPPLY", "Water Supply", "HIGH"),
            ComplaintTypeInfo("ELECTRICITY", "Electricity", "CRITICAL"),
            ComplaintTypeInfo("OTHERS", "Others"),
        ]

    async def _gate(self, name: str) -> None:
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()

    @staticmethod
    def _outcome(value):
        if isinstance(value, Exception):
            raise value
        return value

    async def get_captcha(self) -> CaptchaChallenge:
        self.captcha_count += 1
        self.calls.append(("get_captcha", {}))
        return CaptchaChallenge(f"captcha-{self.captcha_count}", "<svg>ABCDE</svg>")

    async def submit_guest_complaint(self, fields, captcha_id, captcha_text) -> GuestSession:
        self.calls.append(("submit", {"fields": fields, "captcha_id": captcha_id, "captcha_text": captcha_text}))
        await self._gate("submit")
        if self.intake_result is None:
            return GuestSession("session-0001", fields["email"], self.clock.now + timedelta(minutes=10))
        return self._outcome(self.intake_result)

    async def verify_guest_otp(self, email, otp_code, fields, attachments: Sequence[Attachment]) -> AuthResult:
        self.calls.append(("verify", {
            "email": email, "otp_code": otp_code, "fields": fields, "attachments": list(attachments),
        }))
        await self._gate("verify")
        if self.verify_result is None:
            user = User("user-1", fields.get("fullName", ""), email, "CITIZEN")
            return AuthResult("token-abc", user, is_new_user=True, complaint={"id": "CMP-1"})
        return self._outcome(self.verify_result)

    async def resend_guest_otp(self, email, complaint_id: Optional[str] = None) -> GuestSession:
        self.calls.append(("resend", {"email": email}))
        await self._gate("resend")
        if self.resend_result is None:
            return GuestSession("session-0001", email, self.clock.now + timedelta(minutes=10))
        return self._outcome(self.resend_result)

    async def get_wards(self) -> list[Ward]:
        self.calls.append(("get_wards", {}))
        return list(self.wards)

    async def get_complaint_types(self) -> list[ComplaintTypeInfo]:
        return list(self.complaint_types)

    async def track_complaint(self, complaint_id, email=None, phone_number=None) -> TrackingResult:
        return TrackingResult({"id": complaint_id})

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


def image(name: str = "photo.jpg", size: int = 1024, content_type: str = "image/jpeg") -> FileInput:
    return FileInput(filename=name, content_type=content_type, content=b"\xff" * size)


VALID_DETAILS = dict(
    full_name="John Doe",
    email="john@x.com",
    phone_number="+1-555-0100",
    type="WATER_SUPPLY",
    description="No water for 3 days",
)
VALID_LOCATION = dict(ward_id="ward-1", area="Main Street")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def api(clock) -> FakePortalApi:
    return FakePortalApi(clock)


@pytest.fixture
def wards(api) -> WardDirectory:
    return WardDirectory(api)


@pytest.fixture
def store(wards) -> FormStore:
    return FormStore(policy=GUEST_POLICY, wards=wards)


@pytest.fixture
def drafts() -> MemoryDraftRepository:
    return MemoryDraftRepository()


@pytest.fixture
def authenticated() -> list[AuthResult]:
    return []


@pytest.fixture
def machine(store, api, clock, drafts, authenticated) -> SubmissionStateMachine:
    return SubmissionStateMachine(
        store=store,
        api=api,
        captcha=CaptchaGate(api),
        attachments=AttachmentManager(GUEST_POLICY.attachment_limits),
        drafts=drafts,
        on_authenticated=authenticated.append,
        clock=clock,
    )


@pytest.fixture
def ready(machine, wards):
    """A machine with reference data loaded, a valid draft and a solved CAPTCHA."""

    async def prepare() -> SubmissionStateMachine:
        await wards.load()
        await machine.captcha.load()
        machine.store.update_fields(**VALID_DETAILS, **VALID_LOCATION)
        machine.captcha.respond("ABCDE")
        return machine

    return prepare
