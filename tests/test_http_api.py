"""HTTP portal API tests against a mocked requests session."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from civic_complaints.api import HttpPortalApi, create_api
from civic_complaints.attachments import AttachmentManager
from civic_complaints.captcha import CaptchaGate
from civic_complaints.config.settings import ApiSettings, Settings
from civic_complaints.errors import GENERIC_FAILURE_MESSAGE, DomainError, TransportError
from civic_complaints.models import Attachment, SubmissionState
from civic_complaints.state_machine import SubmissionStateMachine
from civic_complaints.store import FormStore
from civic_complaints.validation import GUEST_POLICY

from .conftest import VALID_DETAILS, VALID_LOCATION


def make_response(status: int, body=None, raw: bytes = b"") -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(body).encode() if body is not None else raw
    response.headers["Content-Type"] = "application/json"
    return response


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def portal(session):
    return HttpPortalApi(ApiSettings(base_url="https://portal.example/api/"), session=session)


async def test_get_captcha(portal, session):
    session.request.return_value = make_response(
        200, {"success": True, "data": {"captchaId": "c-1", "captchaSvg": "<svg/>"}}
    )

    challenge = await portal.get_captcha()

    assert challenge.captcha_id == "c-1"
    method, url = session.request.call_args.args
    assert (method, url) == ("GET", "https://portal.example/api/captcha/generate")


async def test_submit_guest_complaint_posts_form_with_captcha(portal, session):
    session.request.return_value = make_response(200, {
        "success": True,
        "data": {"sessionId": "s-1", "email": "john@x.com", "expiresAt": "2026-01-01T12:10:00.000Z"},
    })

    result = await portal.submit_guest_complaint(
        {"fullName": "John Doe", "email": "john@x.com"}, "c-1", "ABCDE"
    )

    assert result.session_id == "s-1"
    assert result.expires_at.isoformat() == "2026-01-01T12:10:00+00:00"
    kwargs = session.request.call_args.kwargs
    assert kwargs["data"] == {
        "fullName": "John Doe", "email": "john@x.com", "captchaId": "c-1", "captchaText": "ABCDE",
    }


async def test_verify_sends_multipart_attachments(portal, session):
    session.request.return_value = make_response(200, {
        "success": True,
        "data": {
            "token": "jwt",
            "user": {"id": 7, "fullName": "John Doe", "email": "john@x.com", "role": "CITIZEN"},
            "complaint": {"id": "CMP-9"},
            "isNewUser": True,
        },
    })
    attachment = Attachment("a-1", "pothole.jpg", "image/jpeg", 3, b"abc")

    auth = await portal.verify_guest_otp("john@x.com", "123456", {"type": "ROAD_REPAIR"}, [attachment])

    assert auth.token == "jwt"
    assert auth.user.id == "7"
    assert auth.is_new_user
    kwargs = session.request.call_args.kwargs
    assert kwargs["data"] == {"type": "ROAD_REPAIR", "email": "john@x.com", "otpCode": "123456"}
    assert kwargs["files"] == [("attachments", ("pothole.jpg", b"abc", "image/jpeg"))]


async def test_structured_error_surfaces_verbatim(portal, session):
    session.request.return_value = make_response(400, {"success": False, "message": "Invalid or expired OTP"})

    with pytest.raises(DomainError) as exc:
        await portal.verify_guest_otp("john@x.com", "000000", {}, [])

    assert str(exc.value) == "Invalid or expired OTP"
    assert exc.value.status == 400


async def test_unstructured_error_is_transport_error(portal, session):
    session.request.return_value = make_response(502, raw=b"<html>Bad Gateway</html>")

    with pytest.raises(TransportError) as exc:
        await portal.get_wards()

    assert exc.value.user_message == GENERIC_FAILURE_MESSAGE
    assert exc.value.status == 502


async def test_connection_failure_is_transport_error(portal, session):
    session.request.side_effect = requests.ConnectionError("refused")

    with pytest.raises(TransportError):
        await portal.get_captcha()


async def test_success_false_in_2xx_is_domain_error(portal, session):
    session.request.return_value = make_response(200, {"success": False, "message": "Duplicate session"})

    with pytest.raises(DomainError, match="Duplicate session"):
        await portal.resend_guest_otp("john@x.com")


async def test_resend_and_wards_and_tracking(portal, session):
    session.request.return_value = make_response(200, {
        "success": True, "data": {"sessionId": "s-2", "expiresAt": "2026-01-01T12:20:00Z"},
    })
    fresh = await portal.resend_guest_otp("john@x.com", complaint_id="CMP-1")
    assert fresh.session_id == "s-2"
    assert session.request.call_args.kwargs["json"] == {"email": "john@x.com", "complaintId": "CMP-1"}

    session.request.return_value = make_response(200, {"success": True, "data": [
        {"id": "w1", "name": "Ward 1", "subZones": [
            {"id": "z1", "name": "North"},
            {"id": "z2", "name": "Closed", "isActive": False},
        ]},
        {"id": "w2", "name": "Ward 2", "isActive": False},
    ]})
    wards = await portal.get_wards()
    assert [w.id for w in wards] == ["w1"]
    assert [z.id for z in wards[0].sub_zones] == ["z1"]

    session.request.return_value = make_response(200, {"success": True, "data": {
        "complaint": {"id": "CMP-1", "status": "REGISTERED"}, "history": [{"status": "REGISTERED"}],
    }})
    tracking = await portal.track_complaint("CMP-1", email="john@x.com")
    assert tracking.complaint["status"] == "REGISTERED"
    assert session.request.call_args.kwargs["params"] == {"email": "john@x.com"}


def test_factory_requires_base_url():
    with pytest.raises(ValueError):
        create_api(Settings(api=ApiSettings(base_url="")))

    api = create_api(Settings(api=ApiSettings(base_url="https://portal.example/api")))
    assert isinstance(api, HttpPortalApi)
    assert api.default_ttl == 600


async def test_missing_payload_fields_are_transport_errors(portal, session):
    session.request.return_value = make_response(200, {"success": True, "data": {}})
    with pytest.raises(TransportError):
        await portal.get_captcha()
    with pytest.raises(TransportError):
        await portal.verify_guest_otp("john@x.com", "123456", {}, [])

    session.request.return_value = make_response(200, {"success": True, "data": ["not-a-ward"]})
    with pytest.raises(TransportError):
        await portal.get_wards()

    session.request.return_value = make_response(200, {"success": True, "data": {"expiresAt": "soon"}})
    with pytest.raises(TransportError):
        await portal.resend_guest_otp("john@x.com")


async def test_empty_verify_payload_keeps_dialog_open(portal, session):
    store = FormStore()
    machine = SubmissionStateMachine(
        store=store,
        api=portal,
        captcha=CaptchaGate(portal),
        attachments=AttachmentManager(GUEST_POLICY.attachment_limits),
    )
    session.request.return_value = make_response(
        200, {"success": True, "data": {"captchaId": "c-1", "captchaSvg": "<svg/>"}}
    )
    await machine.captcha.load()
    machine.captcha.respond("ABCDE")
    store.update_fields(**VALID_DETAILS, **VALID_LOCATION)

    session.request.return_value = make_response(200, {"success": True, "data": {"sessionId": "s-1"}})
    assert await machine.submit() is not None

    session.request.return_value = make_response(200, {"success": True, "data": {}})
    assert await machine.verify("123456") is None

    assert machine.state == SubmissionState.AWAITING_OTP
    assert machine.last_error == GENERIC_FAILURE_MESSAGE
    assert machine.dialog.visible_error == GENERIC_FAILURE_MESSAGE
    assert store.state.auth is None
