"""Submission state machine for the guest complaint flow."""

import dataclasses
import logging
from typing import Callable, Iterable, Optional

from .api.base import PortalApi
from .attachments import AttachmentManager, FileInput, Rejection
from .captcha import CaptchaGate
from .errors import DomainError, PortalError, StateError, ValidationFailed, describe
from .models import Attachment, AuthResult, GuestSession, SubmissionState, WizardStep
from .otp import INCOMPLETE_CODE_MESSAGE, Clock, OtpDialogController, normalize_code, utcnow
from .repository.base import DraftRepository
from .store import Action, FormStore
from .validation import REQUIRED_FIELDS_MESSAGE

logger = logging.getLogger(__name__)

AuthCallback = Callable[[AuthResult], None]


class SubmissionStateMachine:
    """Sequences intake, OTP verification, resend and cancel.

    Every network call captures the current generation before awaiting.
    Cancelling, closing, starting a new intake or succeeding bumps the
    generation, so a response that arrives afterwards is dropped instead of
    touching state that no longer belongs to it.
    """

    def __init__(
        self,
        store: FormStore,
        api: PortalApi,
        captcha: CaptchaGate,
        attachments: AttachmentManager,
        drafts: Optional[DraftRepository] = None,
        on_authenticated: Optional[AuthCallback] = None,
        clock: Clock = utcnow,
        code_length: int = 6,
    ):
        self.store = store
        self.api = api
        self.captcha = captcha
        self.attachments = attachments
        self.drafts = drafts
        self.on_authenticated = on_authenticated
        self.clock = clock
        self.code_length = code_length

        self.state = SubmissionState.IDLE
        self.session: Optional[GuestSession] = None
        self.dialog: Optional[OtpDialogController] = None
        self.last_error: Optional[str] = None
        self._generation = 0
        self._alive = True

    # Helpers

    @property
    def _tag(self) -> str:
        return self.session.session_id[:8] if self.session else "--------"

    def _transition(self, new_state: SubmissionState) -> None:
        logger.info("[SESSION %s] %s -> %s", self._tag, self.state.name, new_state.name)
        self.state = new_state

    def _is_current(self, ticket: int) -> bool:
        return self._alive and ticket == self._generation

    def _invalidate_pending(self) -> int:
        self._generation += 1
        return self._generation

    @property
    def can_submit(self) -> bool:
        return (
            self._alive
            and self.state in (SubmissionState.IDLE, SubmissionState.INTAKE_FAILED)
            and self.captcha.is_solved
        )

    # Attachments

    def add_files(self, files: Iterable[FileInput]) -> tuple[list[Attachment], list[Rejection]]:
        """Add files to the manager and mirror the list into the store."""
        accepted, rejected = self.attachments.add(files)
        self.store.dispatch(Action("set_attachments", self.attachments.items))
        if rejected:
            self.store.dispatch(Action("set_error", AttachmentManager.summary_message(rejected)))
        return accepted, rejected

    def remove_file(self, attachment_id: str) -> bool:
        """Remove an attachment from the manager and the store."""
        removed = self.attachments.remove(attachment_id)
        if removed:
            self.store.dispatch(Action("set_attachments", self.attachments.items))
        return removed

    # Draft persistence

    async def restore_draft(self) -> bool:
        """Load a saved draft into the store. Returns True if one existed."""
        if self.drafts is None:
            return False
        saved = await self.drafts.load()
        if saved is None:
            return False
        draft, step = saved
        self.store.dispatch(Action("load_draft", {"draft": draft, "step": step}))
        return True

    async def save_draft(self) -> None:
        """Persist the current draft and step, if a repository is set."""
        if self.drafts is not None:
            await self.drafts.save(self.store.state.draft, self.store.state.current_step)

    # Transitions

    async def submit(self) -> Optional[GuestSession]:
        """Send the intake request. Returns the new session, or None on failure."""
        if self.state not in (SubmissionState.IDLE, SubmissionState.INTAKE_FAILED):
            raise StateError(f"Cannot submit while {self.state.name}")

        errors = self.store.validate_step(WizardStep.REVIEW)
        if errors:
            self.store.dispatch(Action("set_errors", errors))
            raise ValidationFailed(errors, REQUIRED_FIELDS_MESSAGE)
        captcha_id, captcha_text = self.captcha.credentials()

        fields = self.store.state.draft.to_form_fields()
        self.session = None
        self.dialog = None
        ticket = self._invalidate_pending()
        self._transition(SubmissionState.SUBMITTING_INTAKE)
        self.store.dispatch(Action("submission_started", "intake"))
        self.captcha.invalidate()

        try:
            session = await self.api.submit_guest_complaint(fields, captcha_id, captcha_text)
        except PortalError as e:
            if not self._is_current(ticket):
                logger.info("Discarding stale intake failure")
                return None
            message = describe(e)
            logger.warning("Intake failed: %s", message)
            self.last_error = message
            self.store.dispatch(Action("submission_finished", "intake"))
            self.store.dispatch(Action("set_error", message))
            self._transition(SubmissionState.INTAKE_FAILED)
            await self._refresh_captcha()
            return None

        if not self._is_current(ticket):
            logger.info("Discarding stale intake response")
            return None

        self.session = session
        self.dialog = OtpDialogController(session.expires_at, self.clock, self.code_length)
        self.last_error = None
        self.store.dispatch(Action("submission_finished", "intake"))
        self.store.dispatch(Action("session_opened", session))
        self._transition(SubmissionState.AWAITING_OTP)
        logger.info("[SESSION %s] OTP sent, expires in %ds", self._tag, self.dialog.seconds_remaining())
        return session

    async def verify(self, code: str) -> Optional[AuthResult]:
        """Send the full complaint with the OTP code. Returns the auth result or None."""
        if self.state != SubmissionState.AWAITING_OTP:
            raise StateError(f"Cannot verify while {self.state.name}")

        code = normalize_code(code, self.code_length)
        if len(code) != self.code_length:
            self.dialog.local_error = INCOMPLETE_CODE_MESSAGE
            raise ValidationFailed({"otp": INCOMPLETE_CODE_MESSAGE})

        session = self.session
        dialog = self.dialog
        ticket = self._generation
        fields = self.store.state.draft.to_form_fields()
        attachments = self.attachments.items

        dialog.is_verifying = True
        dialog.server_error = None
        dialog.local_error = None
        self.store.dispatch(Action("submission_started", "verify"))
        self._transition(SubmissionState.SUBMITTING_VERIFY)
        logger.info("[SESSION %s] Verifying code (%d digits, %d attachment(s))",
                    self._tag, len(code), len(attachments))

        try:
            auth = await self.api.verify_guest_otp(session.email, code, fields, attachments)
        except PortalError as e:
            if not self._is_current(ticket):
                logger.info("Discarding stale verify failure")
                return None
            message = describe(e)
            expired = isinstance(e, DomainError) and (e.is_expired or dialog.is_expired)
            logger.info("[SESSION %s] Verification failed (expired=%s)", self._tag, expired)
            self.last_error = message
            dialog.is_verifying = False
            dialog.show_server_error(message, expired=expired)
            self.store.dispatch(Action("submission_finished", "verify"))
            self.store.dispatch(Action("set_error", message))
            self._transition(SubmissionState.AWAITING_OTP)
            return None

        if not self._is_current(ticket):
            logger.info("Discarding verify response for a closed dialog")
            return None

        self._invalidate_pending()
        dialog.is_verifying = False
        self._transition(SubmissionState.SUCCEEDED)
        self.session = None
        self.dialog = None
        self.last_error = None
        self.attachments.clear()
        self.store.dispatch(Action("authenticated", auth))
        if self.drafts is not None:
            await self.drafts.clear()
        logger.info("Guest complaint verified (new user: %s)", auth.is_new_user)

        if self.on_authenticated is not None:
            self.on_authenticated(auth)
        return auth

    async def resend(self) -> Optional[GuestSession]:
        """Request a new code for the same email."""
        if self.state not in (SubmissionState.AWAITING_OTP, SubmissionState.SUBMITTING_VERIFY):
            raise StateError(f"Cannot resend while {self.state.name}")

        session = self.session
        dialog = self.dialog
        ticket = self._generation
        dialog.is_resending = True

        try:
            fresh = await self.api.resend_guest_otp(session.email)
        except PortalError as e:
            if not self._is_current(ticket):
                return None
            message = describe(e)
            dialog.is_resending = False
            dialog.show_server_error(message)
            self.store.dispatch(Action("set_error", message))
            return None

        if not self._is_current(ticket):
            logger.info("Discarding late resend response")
            return None

        self.session = dataclasses.replace(
            session,
            session_id=fresh.session_id or session.session_id,
            expires_at=fresh.expires_at,
        )
        dialog.is_resending = False
        dialog.restart(fresh.expires_at)
        self.store.dispatch(Action("session_opened", self.session))
        logger.info("[SESSION %s] OTP resent", self._tag)
        return self.session

    def cancel(self) -> None:
        """Close the OTP dialog. The server session is left to expire."""
        if self.state in (SubmissionState.IDLE, SubmissionState.SUCCEEDED):
            return
        self._invalidate_pending()
        self.session = None
        self.dialog = None
        self.store.dispatch(Action("session_closed"))
        self._transition(SubmissionState.IDLE)

    def close(self) -> None:
        """Tear down: pending continuations become no-ops and previews are released."""
        self._alive = False
        self._invalidate_pending()
        self.attachments.clear()

    async def _refresh_captcha(self) -> None:
        try:
            await self.captcha.refresh()
        except PortalError as e:
            logger.warning("CAPTCHA refresh failed: %s", describe(e))
