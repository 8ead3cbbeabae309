from __future__ import annotations

import pytest
from bson.objectid import ObjectId

from hostel.models.room import Room
from hostel.models.tag import Tag
from hostel.services.audit import find_inconsistencies
from hostel.services.pending_monitor import resolve_pending_assignments
from hostel.services.reassignment import UserNotFoundError, reassign, release_assignment
from hostel.services.registration import register
from tests.helpers import make_form, make_room, make_tag


def test_release_frees_bed_and_tag():
    room = make_room("101", total_beds=2)
    make_tag("TAG-001")
    user, _ = register(make_form("10000000001"))

    released = release_assignment(user.id, requeue=False)

    assert released.room_status is None
    assert released.room_id is None
    assert released.bed_number is None
    assert released.tag_status is None
    assert released.tag_number is None
    fresh = Room.objects.get(id=room.id)
    assert fresh.available_beds == 2
    assert fresh.occupied_beds == []
    assert Tag.objects.get(tag_number="TAG-001").is_assigned is False
    assert find_inconsistencies() == []


def test_released_bed_goes_to_the_next_pending_user():
    room = make_room("101", total_beds=1)
    first, _ = register(make_form("10000000001"))
    second, _ = register(make_form("10000000002"))
    assert second.room_status == "pending"

    release_assignment(first.id, tag=False, requeue=False)
    resolve_pending_assignments()

    second.reload()
    assert second.room_id == room.id
    assert second.bed_number == "001"


def test_release_twice_frees_the_bed_once():
    room = make_room("101", total_beds=2)
    user, _ = register(make_form("10000000001"))
    register(make_form("10000000002"))

    release_assignment(user.id, tag=False, requeue=False)
    release_assignment(user.id, tag=False, requeue=False)

    assert Room.objects.get(id=room.id).available_beds == 1
    assert find_inconsistencies() == []


def test_release_leaves_field_pending_by_default():
    make_room("101", total_beds=2)
    user, _ = register(make_form("10000000001"))

    released = release_assignment(user.id, tag=False)

    assert released.room_status == "pending"
    assert released.room_number is None


def test_reassign_moves_user_to_preferred_room():
    make_room("101", total_beds=2)
    target = make_room("102", total_beds=2)
    user, _ = register(make_form("10000000001"))
    assert user.room_number == "101"

    moved = reassign(user.id, tag=False, preferred_room_id=str(target.id))

    assert moved.room_status == "assigned"
    assert moved.room_id == target.id
    assert Room.objects.get(room_number="101").available_beds == 2
    assert Room.objects.get(id=target.id).available_beds == 1
    assert find_inconsistencies() == []


def test_reassign_falls_back_when_preferred_tag_is_unknown():
    make_tag("TAG-001")
    make_room("101", total_beds=2)
    user, _ = register(make_form("10000000001"))

    moved = reassign(user.id, room=False, preferred_tag_number="TAG-404")

    # the released tag is the only one, so it comes straight back
    assert moved.tag_number == "TAG-001"
    assert moved.tag_status == "assigned"


def test_reassign_without_capacity_leaves_field_pending():
    make_room("101", total_beds=1)
    register(make_form("10000000001"))
    waiting, _ = register(make_form("10000000002"))

    moved = reassign(waiting.id, tag=False)

    assert moved.room_status == "pending"
    assert Room.objects.get(room_number="101").available_beds == 0


def test_reassign_grants_a_released_field():
    room = make_room("101", total_beds=2)
    user, _ = register(make_form("10000000001"))
    release_assignment(user.id, tag=False, requeue=False)

    moved = reassign(user.id, tag=False)

    assert moved.room_status == "assigned"
    assert moved.room_id == room.id
    assert Room.objects.get(id=room.id).available_beds == 1


def test_unknown_user_is_rejected():
    with pytest.raises(UserNotFoundError):
        release_assignment(ObjectId())
    with pytest.raises(UserNotFoundError):
        reassign("not-an-id")
