from __future__ import annotations

from collections import defaultdict

from hostel.models.room import Room
from hostel.models.tag import Tag
from hostel.models.user import User
from hostel.utils.base import AssignmentStatus


ASSIGNED = AssignmentStatus.ASSIGNED.value
PENDING = AssignmentStatus.PENDING.value


def _room_problems() -> list[str]:
    problems = []
    for room in Room.objects:
        label = f"room {room.wing}-{room.room_number} ({room.gender})"
        if not 0 <= room.available_beds <= room.total_beds:
            problems.append(f"{label}: available_beds={room.available_beds} outside 0..{room.total_beds}")
        occupied = list(room.occupied_beds or [])
        if room.available_beds != room.total_beds - len(occupied):
            problems.append(f"{label}: available_beds={room.available_beds} but {len(occupied)} beds occupied")
        if len(set(occupied)) != len(occupied):
            problems.append(f"{label}: a bed is occupied twice")
    return problems


def _user_problems() -> list[str]:
    problems = []
    beds = defaultdict(list)
    tags = defaultdict(list)
    for user in User.objects:
        if user.room_status == PENDING and user.room_number:
            problems.append(f"user {user.id}: room pending but room {user.room_number} set")
        if user.room_status == ASSIGNED and not user.room_number:
            problems.append(f"user {user.id}: room assigned but no room set")
        if user.tag_status == PENDING and user.tag_number:
            problems.append(f"user {user.id}: tag pending but tag {user.tag_number} set")
        if user.tag_status == ASSIGNED and not user.tag_number:
            problems.append(f"user {user.id}: tag assigned but no tag set")
        if user.room_id and user.bed_number:
            beds[(str(user.room_id), user.bed_number)].append(str(user.id))
        if user.tag_number:
            tags[user.tag_number].append(str(user.id))

    for (room_id, bed_number), holders in beds.items():
        if len(holders) > 1:
            problems.append(f"bed {bed_number} of room {room_id} held by {', '.join(holders)}")
    for tag_number, holders in tags.items():
        if len(holders) > 1:
            problems.append(f"tag {tag_number} held by {', '.join(holders)}")

    occupied = {str(room.id): set(room.occupied_beds or []) for room in Room.objects.only("occupied_beds")}
    for room_id, bed_number in beds:
        if bed_number not in occupied.get(room_id, set()):
            problems.append(f"bed {bed_number} of room {room_id} is held by a user but not occupied")
    for room_id, slots in occupied.items():
        for bed_number in sorted(slots):
            if (room_id, bed_number) not in beds:
                problems.append(f"bed {bed_number} of room {room_id} is occupied but held by no user")

    assigned_tags = {}
    for tag in Tag.objects(is_assigned=True).only("tag_number", "assigned_user_id"):
        assigned_tags[tag.tag_number] = str(tag.assigned_user_id) if tag.assigned_user_id else None
    for tag_number in tags:
        if tag_number not in assigned_tags:
            problems.append(f"tag {tag_number} is held by a user but not marked assigned")
    for tag_number, owner in assigned_tags.items():
        if owner not in tags.get(tag_number, []):
            problems.append(f"tag {tag_number} is assigned to {owner} but held by no such user")
    return problems


def find_inconsistencies() -> list[str]:
    """Every violation of the room counters, bed/tag ownership and status/field agreement.

    Ownership is checked both ways: a bed or tag held by a user must be marked
    taken, and a bed or tag marked taken must be held by a user.
    """
    return _room_problems() + _user_problems()
