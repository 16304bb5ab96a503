"""Interactive console driver for the guest complaint flow."""

import asyncio
from typing import Optional

from .attachments import AttachmentManager, FileInput
from .captcha import CaptchaGate
from .errors import PortalError, ValidationFailed, describe
from .models import AuthResult, ComplaintType, Coordinates, SubmissionState, WizardStep
from .otp import Clock, utcnow
from .state_machine import SubmissionStateMachine
from .store import FormStore
from .validation import ValidationPolicy
from .wards import WardDirectory
from .api.base import PortalApi
from .repository.base import DraftRepository

STEP_FIELDS = {
    WizardStep.DETAILS: [
        ("full_name", "Full name"),
        ("email", "Email"),
        ("phone_number", "Phone number"),
        ("type", "Complaint type"),
        ("description", "Description"),
    ],
    WizardStep.LOCATION: [
        ("ward_id", "Ward id"),
        ("sub_zone_id", "Sub-zone id"),
        ("area", "Area/Locality"),
        ("landmark", "Landmark"),
        ("address", "Address"),
    ],
}


async def ask(prompt: str) -> str:
    """Read one stripped line from stdin without blocking the event loop."""
    return (await asyncio.to_thread(input, prompt)).strip()


class ConsoleWizard:
    """Walks a user through the complaint steps and the OTP dialog."""

    def __init__(
        self,
        api: PortalApi,
        policy: ValidationPolicy,
        drafts: Optional[DraftRepository] = None,
        code_length: int = 6,
        clock: Clock = utcnow,
    ):
        self.api = api
        self.wards = WardDirectory(api)
        self.store = FormStore(policy=policy, wards=self.wards)
        self.captcha = CaptchaGate(api)
        self.attachments = AttachmentManager(policy.attachment_limits)
        self.machine = SubmissionStateMachine(
            store=self.store,
            api=api,
            captcha=self.captcha,
            attachments=self.attachments,
            drafts=drafts,
            on_authenticated=self._on_authenticated,
            code_length=code_length,
            clock=clock,
        )
        self.result: Optional[AuthResult] = None

    def _on_authenticated(self, auth: AuthResult) -> None:
        self.result = auth

    async def run(self) -> Optional[AuthResult]:
        try:
            await self._load_reference_data()
            if await self.machine.restore_draft():
                print("Restored your saved draft.")
            await self._fill_steps()
            while self.machine.state != SubmissionState.SUCCEEDED:
                if not await self._submit():
                    continue
                if await self._otp_loop():
                    break
            return self.result
        finally:
            self.machine.close()

    async def _load_reference_data(self) -> None:
        await self.wards.load()
        types = await self.api.get_complaint_types()
        self.store.complaint_types = {t.id: t for t in types}
        await self.captcha.load()

    async def _fill_steps(self) -> None:
        while self.store.state.current_step < WizardStep.REVIEW:
            step = self.store.state.current_step
            print(f"\n=== Step {int(step)}: {step.name.title()} ===")
            if step == WizardStep.ATTACHMENTS:
                await self._collect_attachments()
            else:
                await self._collect_fields(step)
            try:
                self.store.next_step()
            except ValidationFailed as e:
                print(f"[!] {e}")
                for key, message in e.errors.items():
                    print(f"    {key}: {message}")
            await self.machine.save_draft()

    async def _collect_fields(self, step: WizardStep) -> None:
        if step == WizardStep.DETAILS:
            print("Types: " + ", ".join(t.value for t in ComplaintType))
        else:
            for ward in self.wards.wards:
                zones = ", ".join(sz.id for sz in ward.sub_zones) or "none"
                print(f"  {ward.id}: {ward.name} (sub-zones: {zones})")

        draft = self.store.state.draft.to_dict()
        for key, label in STEP_FIELDS[step]:
            if key == "sub_zone_id" and not self.wards.requires_sub_zone(self.store.state.draft.ward_id):
                continue
            current = draft.get(key) or ""
            value = await ask(f"{label} [{current}]: ")
            if value:
                self.store.update_fields(**{key: value})
        if step == WizardStep.LOCATION:
            await self._collect_coordinates()

    async def _collect_coordinates(self) -> None:
        required = self.store.policy.require_coordinates
        while True:
            current = self.store.state.draft.coordinates
            shown = f"{current.latitude}, {current.longitude}" if current else ""
            text = await ask(f"Latitude, longitude{'' if required else ' (optional)'} [{shown}]: ")
            if not text:
                return
            try:
                coordinates = Coordinates.parse(text)
            except ValueError as e:
                print(f"[!] {e}")
                continue
            self.store.update_fields(coordinates=coordinates)
            return

    async def _collect_attachments(self) -> None:
        while True:
            path = await ask("Attach image path (blank to continue): ")
            if not path:
                return
            try:
                file = FileInput.from_path(path)
            except OSError as e:
                print(f"[!] Cannot read {path}: {e}")
                continue
            _, rejected = self.machine.add_files([file])
            if rejected:
                print(f"[!] {AttachmentManager.summary_message(rejected)}")
            print(f"{len(self.attachments)} file(s) attached")

    async def _submit(self) -> bool:
        challenge = await self.captcha.load()
        print("\nCAPTCHA image:\n" + challenge.captcha_svg)
        answer = await ask("Enter the CAPTCHA text (or 'refresh'): ")
        if answer.lower() == "refresh":
            await self.captcha.refresh()
            return False
        self.captcha.respond(answer)

        try:
            session = await self.machine.submit()
        except ValidationFailed as e:
            print(f"[!] {e}")
            return False
        if session is None:
            print(f"[!] {self.machine.last_error}")
            return False
        print(f"A verification code has been sent to {session.email}.")
        return True

    async def _otp_loop(self) -> bool:
        while self.machine.state == SubmissionState.AWAITING_OTP:
            dialog = self.machine.dialog
            if dialog.is_expired:
                print("The code has expired. Type 'resend' for a new one.")
            else:
                print(f"Time remaining: {dialog.format_remaining()}")
            entry = await ask("Code ('resend' / 'cancel'): ")

            if entry.lower() == "cancel":
                self.machine.cancel()
                return False
            if entry.lower() == "resend":
                try:
                    if await self.machine.resend():
                        print("A new code has been sent.")
                except PortalError as e:
                    print(f"[!] {describe(e)}")
                continue

            dialog.set_code(entry)
            code = dialog.prepare_verify()
            if code is None:
                print(f"[!] {dialog.visible_error}")
                continue
            auth = await self.machine.verify(code)
            if auth is None and self.machine.dialog is not None:
                print(f"[!] {self.machine.dialog.visible_error}")

        if self.machine.state == SubmissionState.SUCCEEDED:
            user = self.result.user if self.result else None
            print("\n=== Complaint submitted ===")
            if user is not None:
                print(f"Signed in as {user.email}" + (" (new account)" if self.result.is_new_user else ""))
            return True
        return False
