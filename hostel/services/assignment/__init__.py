"""Room/bed and tag allocation.

Every resource-consuming write here is a conditional update against the
store: a bed is taken only if the room still has capacity and the slot is
still free, a tag only if it is still unassigned. Losing that race costs one
re-read and one more try before the field is left pending.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from bson.objectid import ObjectId
from pymongo.errors import PyMongoError

from hostel.models.room import Room
from hostel.models.tag import Tag
from hostel.services.notifications import publish_change
from hostel.services.policy import AssignmentPolicy
from hostel.utils.base import CROSS_GENDER_FALLBACK, AssignmentStatus, ChangeAction
from hostel.utils.logger import get_logger


logger = get_logger(__name__)

MAX_RESERVATION_ATTEMPTS = 2


@dataclass(frozen=True)
class Registrant:
    user_id: ObjectId
    gender: str
    is_vip: bool = False
    preferred_room_id: Optional[str] = None
    preferred_tag_number: Optional[str] = None


@dataclass(frozen=True)
class RoomAssignment:
    room_id: ObjectId
    room_number: str
    wing: str
    bed_number: str
    gender: str


@dataclass(frozen=True)
class AssignmentOutcome:
    room: Optional[RoomAssignment]
    tag_number: Optional[str]
    room_status: Optional[str]
    tag_status: Optional[str]

    def user_fields(self) -> dict[str, Any]:
        """Keyword arguments for the assignment fields of a `User`."""
        return {
            "room_id": self.room.room_id if self.room else None,
            "room_number": self.room.room_number if self.room else None,
            "wing": self.room.wing if self.room else None,
            "bed_number": self.room.bed_number if self.room else None,
            "tag_number": self.tag_number,
            "room_status": self.room_status,
            "tag_status": self.tag_status,
        }

    def to_dict(self) -> dict[str, Any]:
        data = self.user_fields()
        data["room_id"] = str(data["room_id"]) if data["room_id"] else None
        return data


def _status(requested: bool, granted: bool) -> Optional[str]:
    if not requested:
        return None
    return AssignmentStatus.ASSIGNED.value if granted else AssignmentStatus.PENDING.value


def _rooms_with_capacity(gender: str, is_vip: bool, policy: AssignmentPolicy) -> list[Room]:
    rooms = [
        room
        for room in Room.objects(gender=gender, available_beds__gt=0).order_by("id")
        if room.next_free_bed() is not None
    ]
    if policy.vip_priority:
        # stable: natural order is kept inside each group
        rooms.sort(key=lambda room: bool(room.is_vip_room) != bool(is_vip))
    return rooms


def room_candidates(
    gender: str,
    is_vip: bool,
    policy: AssignmentPolicy,
    preferred_room_id: Optional[str] = None,
) -> list[Room]:
    """Eligible rooms in the order they should be tried."""
    rooms = _rooms_with_capacity(gender, is_vip, policy)
    if not rooms and policy.allow_cross_gender:
        fallback_gender = CROSS_GENDER_FALLBACK.get(gender)
        if fallback_gender:
            rooms = _rooms_with_capacity(fallback_gender, is_vip, policy)
            if rooms:
                logger.info("Cross-gender fallback | gender=%s | fallback=%s", gender, fallback_gender)

    if preferred_room_id:
        preferred = [room for room in rooms if str(room.id) == str(preferred_room_id)]
        if preferred:
            rooms = preferred + [room for room in rooms if str(room.id) != str(preferred_room_id)]
    return rooms


def reserve_bed(room: Room) -> Optional[str]:
    """Take the first free bed of `room`. Returns None if another writer got there first."""
    bed_number = room.next_free_bed()
    if bed_number is None:
        return None
    taken = Room.conditional_update(
        room.id,
        {"available_beds__gt": 0, "occupied_beds__nin": [bed_number]},
        {"dec__available_beds": 1, "push__occupied_beds": bed_number},
    )
    return bed_number if taken else None


def release_bed(room_id: ObjectId, bed_number: str) -> bool:
    released = Room.conditional_update(
        room_id,
        {"occupied_beds": bed_number},
        {"inc__available_beds": 1, "pull__occupied_beds": bed_number},
    )
    if released:
        logger.info("Bed released | room_id=%s | bed=%s", room_id, bed_number)
        publish_change("rooms", room_id, ChangeAction.RELEASED)
    return released


def assign_room(registrant: Registrant, policy: AssignmentPolicy) -> Optional[RoomAssignment]:
    for attempt in range(1, MAX_RESERVATION_ATTEMPTS + 1):
        candidates = room_candidates(
            registrant.gender,
            registrant.is_vip,
            policy,
            preferred_room_id=registrant.preferred_room_id,
        )
        if not candidates:
            return None

        room = candidates[0]
        bed_number = reserve_bed(room)
        if bed_number is not None:
            logger.info(
                "Bed reserved | user_id=%s | room=%s-%s | bed=%s",
                registrant.user_id,
                room.wing,
                room.room_number,
                bed_number,
            )
            publish_change("rooms", room.id, ChangeAction.CONSUMED)
            return RoomAssignment(
                room_id=room.id,
                room_number=room.room_number,
                wing=room.wing,
                bed_number=bed_number,
                gender=room.gender,
            )
        logger.info("Bed reservation lost | user_id=%s | room_id=%s | attempt=%s", registrant.user_id, room.id, attempt)
    return None


def tag_candidate(preferred_tag_number: Optional[str] = None) -> Optional[Tag]:
    if preferred_tag_number:
        preferred = Tag.objects(tag_number=preferred_tag_number, is_assigned=False).first()
        if preferred:
            return preferred
    return Tag.objects(is_assigned=False).order_by("number_key", "tag_number").first()


def reserve_tag(tag: Tag, user_id: ObjectId) -> bool:
    return Tag.conditional_update(
        tag.id,
        {"is_assigned": False},
        {"set__is_assigned": True, "set__assigned_user_id": user_id},
    )


def release_tag(tag_number: str, user_id: ObjectId) -> bool:
    tag = Tag.objects(tag_number=tag_number).first()
    if tag is None:
        return False
    released = Tag.conditional_update(
        tag.id,
        {"is_assigned": True, "assigned_user_id": user_id},
        {"set__is_assigned": False, "unset__assigned_user_id": True},
    )
    if released:
        logger.info("Tag released | tag=%s | user_id=%s", tag_number, user_id)
        publish_change("tags", tag.id, ChangeAction.RELEASED)
    return released


def assign_tag(registrant: Registrant) -> Optional[str]:
    for attempt in range(1, MAX_RESERVATION_ATTEMPTS + 1):
        tag = tag_candidate(registrant.preferred_tag_number)
        if tag is None:
            return None
        if reserve_tag(tag, registrant.user_id):
            logger.info("Tag reserved | user_id=%s | tag=%s", registrant.user_id, tag.tag_number)
            publish_change("tags", tag.id, ChangeAction.CONSUMED)
            return tag.tag_number
        logger.info("Tag reservation lost | user_id=%s | tag=%s | attempt=%s", registrant.user_id, tag.tag_number, attempt)
    return None


def attempt_assign(
    registrant: Registrant,
    policy: AssignmentPolicy,
    room: bool = True,
    tag: bool = True,
) -> AssignmentOutcome:
    """Try to allocate a bed and a tag independently.

    A resource class that is exhausted (or lost twice to other writers) comes
    back pending; a resource that was not requested comes back with no status.
    """
    room_assignment = assign_room(registrant, policy) if room else None
    try:
        tag_number = assign_tag(registrant) if tag else None
    except Exception:
        if room_assignment is not None:
            try:
                release_bed(room_assignment.room_id, room_assignment.bed_number)
            except PyMongoError as exc:
                logger.error(
                    "Bed leaked, release failed | user_id=%s | room_id=%s | bed=%s | error=%s",
                    registrant.user_id,
                    room_assignment.room_id,
                    room_assignment.bed_number,
                    exc,
                )
        raise
    return AssignmentOutcome(
        room=room_assignment,
        tag_number=tag_number,
        room_status=_status(room, room_assignment is not None),
        tag_status=_status(tag, tag_number is not None),
    )


def release_outcome(outcome: AssignmentOutcome, user_id: ObjectId) -> None:
    """Give back whatever `attempt_assign` reserved."""
    if outcome.room is not None:
        release_bed(outcome.room.room_id, outcome.room.bed_number)
    if outcome.tag_number is not None:
        release_tag(outcome.tag_number, user_id)
