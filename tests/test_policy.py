from __future__ import annotations

import pytest

from hostel.models.settings import DefaultStateSettings, RoomSettings
from hostel.services.notifications import get_feed
from hostel.services.policy import (
    AssignmentPolicy,
    FormPolicy,
    PolicyValidationError,
    load_assignment_policy,
    load_form_policy,
    update_default_state_settings,
    update_registration_form_settings,
    update_room_settings,
)


def test_defaults_when_no_settings_are_stored():
    assert load_assignment_policy() == AssignmentPolicy(allow_cross_gender=False, vip_priority=True)
    assert load_form_policy() == FormPolicy(room_required=True, tag_required=True, locked_state=None)


def test_room_settings_update_merges_fields():
    update_room_settings(allow_cross_gender=True)
    update_room_settings(vip_priority=False)

    stored = RoomSettings.objects.get(id="roomSettings")
    assert stored.allow_cross_gender is True
    assert stored.vip_priority is False
    assert load_assignment_policy() == AssignmentPolicy(allow_cross_gender=True, vip_priority=False)


def test_registration_form_settings_update_merges_fields():
    update_registration_form_settings(room_required=False)

    policy = load_form_policy()
    assert policy.room_required is False
    assert policy.tag_required is True


def test_settings_documents_share_one_collection_without_clobbering():
    update_room_settings(allow_cross_gender=True)
    update_registration_form_settings(tag_required=False)
    update_default_state_settings(is_active=True, default_state="Oyo")

    assert RoomSettings.load().allow_cross_gender is True
    assert load_form_policy() == FormPolicy(room_required=True, tag_required=False, locked_state="Oyo")


def test_activating_state_lock_requires_a_state():
    with pytest.raises(PolicyValidationError):
        update_default_state_settings(is_active=True)


def test_unknown_default_state_is_rejected():
    with pytest.raises(PolicyValidationError):
        update_default_state_settings(default_state="Gotham")


def test_deactivating_state_lock_clears_state():
    update_default_state_settings(is_active=True, default_state="enugu")
    assert DefaultStateSettings.load().default_state == "Enugu"

    update_default_state_settings(is_active=False)

    stored = DefaultStateSettings.load()
    assert stored.is_active is False
    assert stored.default_state == ""
    assert load_form_policy().locked_state is None


def test_settings_updates_publish_capacity_events():
    events = []
    unsubscribe = get_feed().subscribe(events.append)
    try:
        update_room_settings(allow_cross_gender=True)
    finally:
        unsubscribe()

    assert len(events) == 1
    assert events[0].collection == "settings"
    assert events[0].document_id == "roomSettings"
    assert events[0].signals_capacity
