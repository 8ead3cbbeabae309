from __future__ import annotations

from bson.objectid import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

import pytest

import hostel.services.assignment as assignment
from hostel.models.room import Room
from hostel.models.settings import RoomSettings
from hostel.models.tag import Tag
from hostel.services.assignment import Registrant, attempt_assign, room_candidates
from hostel.services.policy import DEGRADED_POLICY, AssignmentPolicy, load_assignment_policy, update_room_settings
from hostel.services.registration import register
from tests.helpers import make_form, make_room, make_tag


def _registrant(gender: str = "Male", is_vip: bool = False, **kwargs) -> Registrant:
    return Registrant(user_id=ObjectId(), gender=gender, is_vip=is_vip, **kwargs)


def test_room_assigned_and_tag_pending_when_no_tags_exist():
    room = make_room("101", total_beds=2)

    user, outcome = register(make_form("10000000001"))

    assert user.room_status == "assigned"
    assert user.room_number == "101"
    assert user.bed_number == "001"
    assert user.tag_status == "pending"
    assert user.tag_number is None
    assert outcome.room.room_id == room.id
    assert Room.objects.get(id=room.id).available_beds == 1


def test_room_and_tag_both_assigned():
    make_room("101", total_beds=2)
    make_tag("TAG-002")
    make_tag("TAG-001")

    user, _ = register(make_form("10000000001"))

    assert user.room_status == "assigned"
    assert user.tag_status == "assigned"
    assert user.tag_number == "TAG-001"
    tag = Tag.objects.get(tag_number="TAG-001")
    assert tag.is_assigned is True
    assert tag.assigned_user_id == user.id


def test_tags_are_taken_in_serial_order():
    make_tag("TAG-10")
    make_tag("TAG-9")

    first = attempt_assign(_registrant(), DEGRADED_POLICY, room=False)

    assert first.tag_number == "TAG-9"
    assert first.room_status is None


def test_male_falls_back_to_female_room_when_cross_gender_allowed():
    make_room("101", total_beds=1, available_beds=0)
    female_room = make_room("401", gender="Female", total_beds=3, available_beds=1, wing="B")
    update_room_settings(allow_cross_gender=True)

    user, _ = register(make_form("10000000002"))

    assert user.room_status == "assigned"
    assert user.room_id == female_room.id
    assert Room.objects.get(id=female_room.id).available_beds == 0


def test_cross_gender_fallback_is_off_by_default():
    make_room("401", gender="Female", total_beds=3, wing="B")

    user, _ = register(make_form("10000000003"))

    assert user.room_status == "pending"
    assert user.room_number is None


def test_female_never_falls_back_to_male_rooms():
    make_room("101", total_beds=2)
    policy = AssignmentPolicy(allow_cross_gender=True, vip_priority=True)

    outcome = attempt_assign(_registrant(gender="Female"), policy, tag=False)

    assert outcome.room is None
    assert outcome.room_status == "pending"


def test_cross_gender_only_used_when_same_gender_is_full():
    make_room("401", gender="Female", total_beds=3, wing="B")
    male_room = make_room("101", total_beds=1)
    policy = AssignmentPolicy(allow_cross_gender=True)

    candidates = room_candidates("Male", False, policy)

    assert [room.id for room in candidates] == [male_room.id]


def test_vip_user_gets_vip_room_first():
    make_room("201", total_beds=4, available_beds=3)
    vip_room = make_room("VIP-1", total_beds=1, is_vip_room=True, bed_numbers=["VIP001"])

    user, _ = register(make_form("10000000004", is_vip=True))

    assert user.room_id == vip_room.id
    assert user.bed_number == "VIP001"


def test_non_vip_user_gets_standard_room_first():
    make_room("VIP-1", total_beds=1, is_vip_room=True)
    standard = make_room("201", total_beds=4, available_beds=3)

    user, _ = register(make_form("10000000005"))

    assert user.room_id == standard.id


def test_without_vip_priority_rooms_are_taken_in_natural_order():
    first = make_room("201", total_beds=4, available_beds=3)
    make_room("VIP-1", total_beds=1, is_vip_room=True)

    outcome = attempt_assign(_registrant(is_vip=True), AssignmentPolicy(vip_priority=False), tag=False)

    assert outcome.room.room_id == first.id


def test_explicit_bed_numbers_are_used_in_order():
    room = make_room("301", total_beds=3, available_beds=2, bed_numbers=["010", "011", "012"])

    outcome = attempt_assign(_registrant(), DEGRADED_POLICY, tag=False)

    assert outcome.room.bed_number == "011"
    assert Room.objects.get(id=room.id).occupied_beds == ["010", "011"]


def test_preferred_room_is_tried_first_when_eligible():
    make_room("101", total_beds=2)
    preferred = make_room("102", total_beds=2)

    outcome = attempt_assign(_registrant(preferred_room_id=str(preferred.id)), DEGRADED_POLICY, tag=False)

    assert outcome.room.room_id == preferred.id


def test_lost_race_retries_against_fresh_state(monkeypatch):
    contested = make_room("101", total_beds=1)
    spare = make_room("102", total_beds=1)
    real_reserve = assignment.reserve_bed
    calls = []

    def reserve_after_competitor(room):
        calls.append(room.id)
        if len(calls) == 1:
            # another registrant takes the last bed between read and write
            Room.conditional_update(
                room.id,
                {"available_beds__gt": 0},
                {"dec__available_beds": 1, "push__occupied_beds": "001"},
            )
        return real_reserve(room)

    monkeypatch.setattr(assignment, "reserve_bed", reserve_after_competitor)

    outcome = attempt_assign(_registrant(), DEGRADED_POLICY, tag=False)

    assert calls == [contested.id, spare.id]
    assert outcome.room.room_id == spare.id
    assert outcome.room_status == "assigned"


def test_two_lost_races_leave_room_pending(monkeypatch):
    room = make_room("101", total_beds=2)
    monkeypatch.setattr(assignment, "reserve_bed", lambda room: None)

    outcome = attempt_assign(_registrant(), DEGRADED_POLICY, tag=False)

    assert outcome.room is None
    assert outcome.room_status == "pending"
    assert Room.objects.get(id=room.id).available_beds == 2


def test_reserve_bed_never_overfills_a_room():
    room = make_room("101", total_beds=1)
    stale = Room.objects.get(id=room.id)

    assert assignment.reserve_bed(room) == "001"
    assert assignment.reserve_bed(stale) is None

    fresh = Room.objects.get(id=room.id)
    assert fresh.available_beds == 0
    assert fresh.occupied_beds == ["001"]


def test_reserve_tag_is_first_writer_wins():
    tag = make_tag("TAG-001")
    stale = Tag.objects.get(id=tag.id)

    assert assignment.reserve_tag(tag, ObjectId()) is True
    assert assignment.reserve_tag(stale, ObjectId()) is False


def test_unreadable_room_settings_fall_back_to_degraded_policy(monkeypatch):
    def broken_load():
        raise ServerSelectionTimeoutError("settings unavailable")

    monkeypatch.setattr(RoomSettings, "load", classmethod(lambda cls: broken_load()))

    assert load_assignment_policy() == DEGRADED_POLICY


def test_tag_failure_releases_reserved_bed(monkeypatch):
    room = make_room("101", total_beds=2)

    def broken_assign_tag(registrant):
        raise ServerSelectionTimeoutError("tags unavailable")

    monkeypatch.setattr(assignment, "assign_tag", broken_assign_tag)

    with pytest.raises(ServerSelectionTimeoutError):
        attempt_assign(_registrant(), DEGRADED_POLICY)

    fresh = Room.objects.get(id=room.id)
    assert fresh.available_beds == 2
    assert fresh.occupied_beds == []


def test_declined_resources_have_no_status():
    make_room("101", total_beds=2)
    make_tag("TAG-001")

    outcome = attempt_assign(_registrant(), DEGRADED_POLICY, room=False, tag=False)

    assert outcome.room_status is None
    assert outcome.tag_status is None
    assert Tag.objects.get(tag_number="TAG-001").is_assigned is False
