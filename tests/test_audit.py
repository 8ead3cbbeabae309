from __future__ import annotations

from hostel.models.room import Room
from hostel.models.user import User
from hostel.services.audit import find_inconsistencies
from hostel.services.registration import register
from tests.helpers import make_form, make_room, make_tag


def test_clean_store_has_no_inconsistencies():
    make_room("101", total_beds=2)
    make_tag("TAG-001")
    register(make_form("10000000001"))
    register(make_form("10000000002"))
    register(make_form("10000000003"))

    assert find_inconsistencies() == []


def test_status_field_disagreement_is_reported():
    make_room("101", total_beds=2)
    user, _ = register(make_form("10000000001"))
    User.conditional_update(user.id, {}, {"set__room_status": "pending"})

    problems = find_inconsistencies()

    assert any("room pending but room 101 set" in p for p in problems)


def test_double_booked_bed_is_reported():
    room = make_room("101", total_beds=2)
    first, _ = register(make_form("10000000001"))
    second, _ = register(make_form("10000000002"))
    User.conditional_update(second.id, {}, {"set__bed_number": first.bed_number})

    problems = find_inconsistencies()

    assert any(f"bed {first.bed_number} of room {room.id}" in p for p in problems)


def test_counter_drift_is_reported():
    room = make_room("101", total_beds=2)
    Room.conditional_update(room.id, {}, {"dec__available_beds": 1})

    problems = find_inconsistencies()

    assert any("available_beds=1 but 0 beds occupied" in p for p in problems)


def test_occupied_bed_without_holder_is_reported():
    room = make_room("101", total_beds=2, available_beds=1)

    problems = find_inconsistencies()

    assert f"bed 001 of room {room.id} is occupied but held by no user" in problems


def test_assigned_tag_without_holder_is_reported():
    make_tag("TAG-001", is_assigned=True)

    problems = find_inconsistencies()

    assert "tag TAG-001 is assigned to None but held by no such user" in problems


def test_tag_pointing_at_another_user_is_reported():
    make_room("101", total_beds=2)
    make_tag("TAG-001")
    user, _ = register(make_form("10000000001"))
    User.conditional_update(user.id, {}, {"set__tag_status": "pending", "unset__tag_number": True})

    problems = find_inconsistencies()

    assert f"tag TAG-001 is assigned to {user.id} but held by no such user" in problems
