"""Admin release and reassignment of a registrant's bed and tag.

The user document is updated first, conditionally on it still holding the
resource, and the resource is handed back only when that update applied. Two
admins releasing the same user therefore free the bed or tag once.
"""

from __future__ import annotations

from typing import Optional

from bson.objectid import ObjectId

from hostel.models.user import User
from hostel.services.assignment import Registrant, release_bed, release_tag
from hostel.services.notifications import publish_change
from hostel.services.pending_monitor import resolve_pending_room, resolve_pending_tag
from hostel.services.policy import load_assignment_policy
from hostel.utils.base import AssignmentStatus, ChangeAction
from hostel.utils.logger import get_logger


logger = get_logger(__name__)

PENDING = AssignmentStatus.PENDING.value
ASSIGNED = AssignmentStatus.ASSIGNED.value


class UserNotFoundError(Exception):
    """Raised when the registrant id does not exist."""


def _load_user(user_id: str | ObjectId) -> User:
    user = User.objects(id=user_id).first() if ObjectId.is_valid(str(user_id)) else None
    if user is None:
        raise UserNotFoundError(f"User {user_id} not found")
    return user


def _status_mutation(field: str, requeue: bool) -> dict:
    if requeue:
        return {f"set__{field}": PENDING}
    return {f"unset__{field}": True}


def _release_room(user: User, requeue: bool) -> bool:
    if user.room_status != ASSIGNED or not user.room_id:
        return False
    applied = User.conditional_update(
        user.id,
        {"room_status": ASSIGNED, "room_id": user.room_id, "bed_number": user.bed_number},
        {
            "unset__room_id": True,
            "unset__room_number": True,
            "unset__wing": True,
            "unset__bed_number": True,
            **_status_mutation("room_status", requeue),
        },
    )
    if not applied:
        return False
    if not release_bed(user.room_id, user.bed_number):
        logger.warning("Bed was not marked occupied | user_id=%s | room_id=%s | bed=%s", user.id, user.room_id, user.bed_number)
    return True


def _release_tag(user: User, requeue: bool) -> bool:
    if user.tag_status != ASSIGNED or not user.tag_number:
        return False
    applied = User.conditional_update(
        user.id,
        {"tag_status": ASSIGNED, "tag_number": user.tag_number},
        {"unset__tag_number": True, **_status_mutation("tag_status", requeue)},
    )
    if not applied:
        return False
    if not release_tag(user.tag_number, user.id):
        logger.warning("Tag was not marked assigned | user_id=%s | tag=%s", user.id, user.tag_number)
    return True


def release_assignment(
    user_id: str | ObjectId,
    room: bool = True,
    tag: bool = True,
    requeue: bool = True,
) -> User:
    """Take the bed and/or tag away from a registrant.

    By default the field goes back to pending and the monitor will fill it
    again; with `requeue=False` it is cleared as if the resource was declined.
    """
    user = _load_user(user_id)
    released_room = room and _release_room(user, requeue)
    released_tag = tag and _release_tag(user, requeue)
    if released_room or released_tag:
        logger.info(
            "Assignment released | user_id=%s | room=%s | tag=%s | requeue=%s",
            user.id,
            released_room,
            released_tag,
            requeue,
        )
        publish_change("users", user.id, ChangeAction.UPDATED)
    user.reload()
    return user


def reassign(
    user_id: str | ObjectId,
    room: bool = True,
    tag: bool = True,
    preferred_room_id: Optional[str] = None,
    preferred_tag_number: Optional[str] = None,
) -> User:
    """Release the chosen resources and assign them again right away.

    The preferences are hints, as on the registration form. A field that finds
    no capacity is left pending for the monitor.
    """
    user = release_assignment(user_id, room=room, tag=tag, requeue=True)
    # a declined or cleared field is queued as well
    if room and user.room_status is None:
        User.conditional_update(user.id, {"room_status": None}, {"set__room_status": PENDING})
    if tag and user.tag_status is None:
        User.conditional_update(user.id, {"tag_status": None}, {"set__tag_status": PENDING})
    user.reload()
    registrant = Registrant(
        user_id=user.id,
        gender=user.gender,
        is_vip=bool(user.is_vip),
        preferred_room_id=preferred_room_id,
        preferred_tag_number=preferred_tag_number,
    )
    if room and user.room_status == PENDING:
        resolve_pending_room(user, registrant, load_assignment_policy())
    if tag and user.tag_status == PENDING:
        resolve_pending_tag(user, registrant)
    user.reload()
    return user
