"""Form state store with named, serializable mutations."""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .errors import StateError, ValidationFailed
from .models import (
    Attachment,
    AuthResult,
    ComplaintDraft,
    ComplaintTypeInfo,
    Coordinates,
    GuestSession,
    Priority,
    WizardStep,
)
from .validation import GUEST_POLICY, REQUIRED_FIELDS_MESSAGE, ValidationPolicy, validate
from .wards import WardDirectory

logger = logging.getLogger(__name__)

DRAFT_FIELDS = frozenset(f.name for f in dataclasses.fields(ComplaintDraft))


@dataclass(frozen=True)
class Action:
    """A named mutation of the form state."""
    name: str
    payload: Any = None


@dataclass
class FormState:
    draft: ComplaintDraft = field(default_factory=ComplaintDraft)
    current_step: WizardStep = WizardStep.DETAILS
    errors: dict[str, str] = field(default_factory=dict)
    attachments: list[Attachment] = field(default_factory=list)
    is_submitting: bool = False
    is_verifying: bool = False
    session: Optional[GuestSession] = None
    error: Optional[str] = None
    auth: Optional[AuthResult] = None


Listener = Callable[[Action, FormState], None]


class FormStore:
    """Single-writer holder of the complaint form state.

    Every change goes through ``dispatch`` with a named ``Action`` so that
    updates coming from many widgets stay serialized and show up in
    ``history``. The convenience methods below only build actions.
    """

    def __init__(
        self,
        policy: ValidationPolicy = GUEST_POLICY,
        wards: Optional[WardDirectory] = None,
        complaint_types: Optional[dict[str, ComplaintTypeInfo]] = None,
    ):
        self.policy = policy
        self.wards = wards
        self.complaint_types = complaint_types or {}
        self.state = FormState()
        self.history: list[str] = []
        self._listeners: list[Listener] = []
        self._reducers: dict[str, Callable[[Any], None]] = {
            "update_fields": self._update_fields,
            "next_step": self._next_step,
            "prev_step": self._prev_step,
            "set_step": self._set_step,
            "set_attachments": self._set_attachments,
            "submission_started": self._submission_started,
            "submission_finished": self._submission_finished,
            "session_opened": self._session_opened,
            "session_closed": self._session_closed,
            "set_errors": self._set_errors,
            "set_error": self._set_error,
            "clear_error": self._clear_error,
            "authenticated": self._authenticated,
            "load_draft": self._load_draft,
            "reset": self._reset,
        }

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called after every dispatch."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, action: Action) -> FormState:
        """Apply a named action and notify listeners."""
        reducer = self._reducers.get(action.name)
        if reducer is None:
            raise StateError(f"Unknown action: {action.name}")
        try:
            reducer(action.payload)
        finally:
            # A blocked transition still updates the visible errors.
            self.history.append(action.name)
            logger.debug("Dispatched %s", action.name)
            for listener in list(self._listeners):
                listener(action, self.state)
        return self.state

    # Convenience wrappers

    def update_fields(self, **fields) -> FormState:
        """Merge field values into the draft."""
        return self.dispatch(Action("update_fields", fields))

    def next_step(self) -> FormState:
        """Advance one step if the current step validates."""
        return self.dispatch(Action("next_step"))

    def prev_step(self) -> FormState:
        """Go back one step."""
        return self.dispatch(Action("prev_step"))

    def reset(self) -> FormState:
        """Discard the draft and start over."""
        return self.dispatch(Action("reset"))

    def validate_step(self, step: Optional[WizardStep] = None) -> dict[str, str]:
        """Validate a step (the current one by default) against the policy."""
        ward_map = self.wards.by_id if self.wards is not None else None
        return validate(
            step or self.state.current_step,
            self.state.draft,
            self.policy,
            ward_map,
            self.state.attachments,
        )

    # Reducers

    def _update_fields(self, fields: dict) -> None:
        """Merge fields, derive priority and re-validate the current step."""
        unknown = set(fields) - DRAFT_FIELDS
        if unknown:
            raise StateError(f"Unknown draft field(s): {', '.join(sorted(unknown))}")

        coords = fields.get("coordinates")
        if isinstance(coords, dict):
            fields = {**fields, "coordinates": Coordinates(**coords)}

        draft = self.state.draft
        type_changed = "type" in fields and fields["type"] != draft.type
        ward_changed = "ward_id" in fields and fields["ward_id"] != draft.ward_id
        draft = dataclasses.replace(draft, **fields)

        if type_changed and "priority" not in fields:
            info = self.complaint_types.get(draft.type)
            priority = info.priority if info is not None and info.priority else Priority.MEDIUM.value
            draft = dataclasses.replace(draft, priority=priority)
        if ward_changed and "sub_zone_id" not in fields:
            draft = dataclasses.replace(draft, sub_zone_id="")

        self.state.draft = draft
        self.state.errors = self.validate_step()

    def _next_step(self, _payload: Any) -> None:
        """Advance unless the current step has errors."""
        errors = self.validate_step()
        self.state.errors = errors
        if errors:
            raise ValidationFailed(errors, REQUIRED_FIELDS_MESSAGE)
        if self.state.current_step < WizardStep.REVIEW:
            self.state.current_step = WizardStep(self.state.current_step + 1)

    def _prev_step(self, _payload: Any) -> None:
        """Step back and clear errors."""
        if self.state.current_step > WizardStep.DETAILS:
            self.state.current_step = WizardStep(self.state.current_step - 1)
        self.state.errors = {}

    def _set_step(self, step: int) -> None:
        """Jump to a step once every earlier step validates."""
        step = WizardStep(step)
        # Jumping ahead must not skip an incomplete step.
        for earlier in range(WizardStep.DETAILS, step):
            errors = self.validate_step(WizardStep(earlier))
            if errors:
                self.state.errors = errors
                raise ValidationFailed(errors, REQUIRED_FIELDS_MESSAGE)
        self.state.current_step = step
        self.state.errors = {}

    def _set_attachments(self, attachments: list[Attachment]) -> None:
        """Replace the attachment list."""
        self.state.attachments = list(attachments)
        if self.state.current_step == WizardStep.ATTACHMENTS:
            self.state.errors = self.validate_step()

    def _submission_started(self, kind: str) -> None:
        """Mark an intake or verify request in flight."""
        if kind == "verify":
            self.state.is_verifying = True
        else:
            self.state.is_submitting = True
        self.state.error = None

    def _submission_finished(self, kind: str) -> None:
        """Clear the in-flight flag for intake or verify."""
        if kind == "verify":
            self.state.is_verifying = False
        else:
            self.state.is_submitting = False

    def _session_opened(self, session: GuestSession) -> None:
        """Record the active guest session."""
        self.state.session = session
        self.state.error = None

    def _session_closed(self, _payload: Any) -> None:
        """Drop the session and any in-flight flags."""
        self.state.session = None
        self.state.is_submitting = False
        self.state.is_verifying = False

    def _set_errors(self, errors: dict[str, str]) -> None:
        """Replace the field error map."""
        self.state.errors = dict(errors)

    def _set_error(self, message: str) -> None:
        """Set the form-level error message."""
        self.state.error = message

    def _clear_error(self, _payload: Any) -> None:
        """Clear the form-level error message."""
        self.state.error = None

    def _authenticated(self, auth: AuthResult) -> None:
        """Start a fresh form holding only the auth result."""
        self.state = FormState(auth=auth)

    def _load_draft(self, payload: dict) -> None:
        """Restore a saved draft and step."""
        self.state.draft = payload["draft"]
        self.state.current_step = WizardStep(payload.get("step", WizardStep.DETAILS))
        self.state.errors = {}

    def _reset(self, _payload: Any) -> None:
        """Return to the initial state."""
        self.state = FormState()
