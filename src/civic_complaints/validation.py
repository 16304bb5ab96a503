"""Per-step validation of the complaint draft."""

import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from .attachments import (
    CITIZEN_WIZARD_LIMITS,
    GUEST_WIZARD_LIMITS,
    AttachmentLimits,
    validate_attachments,
)
from .models import ComplaintDraft, ComplaintType, Ward, WizardStep

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_REGEX = re.compile(r"^\+?[\d\s\-()]{10,}$")

REQUIRED_FIELDS_MESSAGE = "Please complete all required fields before continuing"

VALID_COMPLAINT_TYPES = frozenset(t.value for t in ComplaintType)


@dataclass(frozen=True)
class ValidationPolicy:
    """Validation rules for one submission mode.

    The guest and citizen forms disagree on which location fields are
    mandatory and on attachment caps; each mode gets its own policy.
    """
    name: str
    min_full_name_length: int = 2
    max_full_name_length: int = 100
    min_description_length: int = 10
    max_description_length: int = 2000
    min_area_length: int = 2
    max_area_length: int = 200
    max_landmark_length: int = 200
    max_address_length: int = 500
    require_landmark: bool = False
    require_address: bool = False
    require_coordinates: bool = False
    attachment_limits: AttachmentLimits = GUEST_WIZARD_LIMITS


GUEST_POLICY = ValidationPolicy(name="guest")
CITIZEN_POLICY = ValidationPolicy(
    name="citizen",
    require_landmark=True,
    require_address=True,
    require_coordinates=True,
    attachment_limits=CITIZEN_WIZARD_LIMITS,
)

POLICIES = {p.name: p for p in (GUEST_POLICY, CITIZEN_POLICY)}


def policy_for(mode: str) -> ValidationPolicy:
    """Look up the policy for a submission mode (case-insensitive)."""
    try:
        return POLICIES[mode.lower()]
    except KeyError:
        raise ValueError(f"Unknown submission mode: {mode!r}") from None


def _check_length(
    errors: dict[str, str], key: str, value: str, label: str, minimum: int, maximum: int
) -> None:
    """Record a required or length error for a trimmed text field."""
    value = value.strip()
    if not value:
        errors[key] = f"{label} is required"
    elif len(value) < minimum:
        errors[key] = f"{label} must be at least {minimum} characters"
    elif len(value) > maximum:
        errors[key] = f"{label} cannot exceed {maximum} characters"


def validate_details(draft: ComplaintDraft, policy: ValidationPolicy) -> dict[str, str]:
    """Identity fields, complaint type and description."""
    errors: dict[str, str] = {}

    _check_length(
        errors, "fullName", draft.full_name, "Full name",
        policy.min_full_name_length, policy.max_full_name_length,
    )

    email = draft.email.strip()
    if not email:
        errors["email"] = "Email is required"
    elif not EMAIL_REGEX.match(email):
        errors["email"] = "Please enter a valid email address"

    phone = draft.phone_number.strip()
    if not phone:
        errors["phoneNumber"] = "Phone number is required"
    elif not PHONE_REGEX.match(phone):
        errors["phoneNumber"] = "Please enter a valid phone number (minimum 10 digits)"

    if not draft.type:
        errors["type"] = "Complaint type is required"
    elif draft.type not in VALID_COMPLAINT_TYPES:
        errors["type"] = "Invalid complaint type selected"

    _check_length(
        errors, "description", draft.description, "Description",
        policy.min_description_length, policy.max_description_length,
    )
    return errors


def validate_location(
    draft: ComplaintDraft,
    policy: ValidationPolicy,
    wards: Optional[Mapping[str, Ward]] = None,
) -> dict[str, str]:
    """Ward, sub-zone, area and the policy's optional location fields."""
    errors: dict[str, str] = {}

    if not draft.ward_id.strip():
        errors["wardId"] = "Ward selection is required"
    elif wards is not None:
        ward = wards.get(draft.ward_id)
        if ward is None:
            errors["wardId"] = "Selected ward is not available"
        elif ward.sub_zones:
            known = {sz.id for sz in ward.sub_zones}
            if not draft.sub_zone_id:
                errors["subZoneId"] = "Sub-zone selection is required"
            elif draft.sub_zone_id not in known:
                errors["subZoneId"] = "Selected sub-zone does not belong to this ward"

    _check_length(
        errors, "area", draft.area, "Area/Locality",
        policy.min_area_length, policy.max_area_length,
    )

    landmark = draft.landmark.strip()
    if policy.require_landmark and not landmark:
        errors["landmark"] = "Landmark is required"
    elif len(landmark) > policy.max_landmark_length:
        errors["landmark"] = f"Landmark cannot exceed {policy.max_landmark_length} characters"

    address = draft.address.strip()
    if policy.require_address and not address:
        errors["address"] = "Full address is required"
    elif len(address) > policy.max_address_length:
        errors["address"] = f"Address cannot exceed {policy.max_address_length} characters"

    coords = draft.coordinates
    if coords is None:
        if policy.require_coordinates:
            errors["coordinates"] = "Location (GPS coordinates) is required"
    elif not (-90 <= coords.latitude <= 90 and -180 <= coords.longitude <= 180):
        errors["coordinates"] = "Coordinates are out of range"

    return errors


def validate(
    step: WizardStep,
    draft: ComplaintDraft,
    policy: ValidationPolicy = GUEST_POLICY,
    wards: Optional[Mapping[str, Ward]] = None,
    attachments: Iterable = (),
) -> dict[str, str]:
    """Map a step and the current draft to per-field error messages.

    An empty result means the step is complete. REVIEW merges every step.
    """
    step = WizardStep(step)
    if step == WizardStep.DETAILS:
        return validate_details(draft, policy)
    if step == WizardStep.LOCATION:
        return validate_location(draft, policy, wards)
    if step == WizardStep.ATTACHMENTS:
        return validate_attachments(attachments, policy.attachment_limits)

    errors: dict[str, str] = {}
    errors.update(validate_details(draft, policy))
    errors.update(validate_location(draft, policy, wards))
    errors.update(validate_attachments(attachments, policy.attachment_limits))
    return errors


def can_advance(
    step: WizardStep,
    draft: ComplaintDraft,
    policy: ValidationPolicy = GUEST_POLICY,
    wards: Optional[Mapping[str, Ward]] = None,
    attachments: Iterable = (),
) -> bool:
    """True when the step has no validation errors."""
    return not validate(step, draft, policy, wards, attachments)
