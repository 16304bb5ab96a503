"""Form store tests."""

import pytest

from civic_complaints.errors import StateError, ValidationFailed
from civic_complaints.models import ComplaintTypeInfo, WizardStep
from civic_complaints.store import Action, FormStore
from civic_complaints.validation import REQUIRED_FIELDS_MESSAGE

from .conftest import VALID_DETAILS, VALID_LOCATION


def test_next_step_blocked_until_step_is_valid():
    store = FormStore()

    with pytest.raises(ValidationFailed) as exc:
        store.next_step()

    assert str(exc.value) == REQUIRED_FIELDS_MESSAGE
    assert store.state.current_step == WizardStep.DETAILS
    assert "fullName" in store.state.errors

    store.update_fields(**VALID_DETAILS)
    store.next_step()
    assert store.state.current_step == WizardStep.LOCATION
    assert store.state.errors == {}


def test_steps_advance_to_review_and_back():
    store = FormStore()
    store.update_fields(**VALID_DETAILS, **VALID_LOCATION)
    for _ in range(4):
        store.next_step()
    assert store.state.current_step == WizardStep.REVIEW

    store.prev_step()
    assert store.state.current_step == WizardStep.ATTACHMENTS


def test_set_step_cannot_skip_incomplete_steps():
    store = FormStore()
    store.update_fields(**VALID_DETAILS)
    with pytest.raises(ValidationFailed):
        store.dispatch(Action("set_step", WizardStep.ATTACHMENTS))
    assert store.state.current_step == WizardStep.DETAILS
    assert "wardId" in store.state.errors


def test_priority_derived_from_type_catalog():
    store = FormStore(complaint_types={
        "ELECTRICITY": ComplaintTypeInfo("ELECTRICITY", "Electricity", "CRITICAL"),
    })
    store.update_fields(type="ELECTRICITY")
    assert store.state.draft.priority == "CRITICAL"

    store.update_fields(type="OTHERS")
    assert store.state.draft.priority == "MEDIUM"

    store.update_fields(type="ELECTRICITY", priority="LOW")
    assert store.state.draft.priority == "LOW"


def test_changing_ward_clears_sub_zone():
    store = FormStore()
    store.update_fields(ward_id="ward-2", sub_zone_id="sz-1")
    store.update_fields(ward_id="ward-1")
    assert store.state.draft.sub_zone_id == ""


def test_coordinates_accepted_as_mapping():
    store = FormStore()
    store.update_fields(coordinates={"latitude": 12.5, "longitude": 77.5})
    assert store.state.draft.coordinates.latitude == 12.5


def test_unknown_action_and_field_are_rejected():
    store = FormStore()
    with pytest.raises(StateError):
        store.dispatch(Action("teleport"))
    with pytest.raises(StateError):
        store.update_fields(colour="red")


def test_history_and_listeners():
    store = FormStore()
    seen = []
    unsubscribe = store.subscribe(lambda action, state: seen.append(action.name))

    store.update_fields(full_name="Jane")
    with pytest.raises(ValidationFailed):
        store.next_step()
    unsubscribe()
    store.reset()

    assert seen == ["update_fields", "next_step"]
    assert store.history == ["update_fields", "next_step", "reset"]
    assert store.state.draft.full_name == ""
