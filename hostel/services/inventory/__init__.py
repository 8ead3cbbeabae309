"""Room and tag inventory: bulk imports, availability and dashboard counts."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union

from mongoengine import NotUniqueError

from hostel.models.room import Room, default_bed_numbers
from hostel.models.tag import Tag
from hostel.models.user import User
from hostel.services.notifications import publish_change
from hostel.services.policy import load_assignment_policy
from hostel.utils.base import CROSS_GENDER_FALLBACK, AssignmentStatus, ChangeAction, Gender
from hostel.utils.logger import get_logger


logger = get_logger(__name__)

RESERVED = "RESERVED"
_RANGE = re.compile(r"^([A-Za-z&\s]*?)(\d+)\s*-\s*([A-Za-z&\s]*?)(\d+)$")
_BED = re.compile(r"^([A-Z]*)(\d+)$")


class InventoryError(Exception):
    """Raised for an import row that cannot be turned into rooms."""


@dataclass
class ImportReport:
    created: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "created": len(self.created),
            "skipped": len(self.skipped),
            "created_items": self.created,
            "skipped_items": self.skipped,
        }


def is_reserved(bed_numbers: Union[str, list[str], None]) -> bool:
    return isinstance(bed_numbers, str) and bed_numbers.strip().upper() == RESERVED


def _bed_slot(part: str) -> tuple[str, int]:
    match = _BED.match(re.sub(r"\s+", "", part))
    if not match:
        raise InventoryError(f"Unreadable bed number: {part}")
    return match.group(1), int(match.group(2))


def _bed_range(part: str) -> list[tuple[str, int]]:
    match = _RANGE.match(part)
    if not match:
        raise InventoryError(f"Unreadable bed range: {part}")
    prefix, start, end_prefix, end = (group.replace(" ", "") for group in match.groups())
    if end_prefix and end_prefix != prefix:
        raise InventoryError(f"Mismatched bed range: {part}")
    if int(start) > int(end):
        raise InventoryError(f"Bed range runs backwards: {part}")
    return [(prefix, n) for n in range(int(start), int(end) + 1)]


def parse_bed_numbers(bed_numbers: Union[str, list[str], None], total_beds: int) -> list[str]:
    """Turn an import cell into exactly `total_beds` bed slots.

    Accepts a list, a comma/semicolon separated string, a range such as
    ``001-004`` or ``VIP001-VIP004``, or ``RESERVED`` (VIP slots ``VIP001...``).
    A letter prefix is kept and numbers are zero-padded to three digits. A
    short list is extended past its highest number with that slot's prefix.
    An empty cell gives ``001..total_beds``.

    Raises InventoryError for an unreadable part, a duplicate slot or more
    slots than beds.
    """
    if isinstance(bed_numbers, str):
        cleaned = bed_numbers.strip().upper()
        if not cleaned:
            return default_bed_numbers(total_beds)
        if cleaned == RESERVED:
            return [f"VIP{i:03d}" for i in range(1, total_beds + 1)]
        parts = [p.strip() for p in re.split(r"[,;\n\t]", cleaned) if p.strip()]
    elif bed_numbers:
        parts = [str(p).strip().upper() for p in bed_numbers if str(p).strip()]
    else:
        return default_bed_numbers(total_beds)

    if not parts:
        return default_bed_numbers(total_beds)
    if len(parts) == 1 and "-" in parts[0]:
        slots = _bed_range(parts[0])
    else:
        slots = [_bed_slot(part) for part in parts]

    if len(slots) > total_beds:
        raise InventoryError(f"{len(slots)} bed numbers listed for {total_beds} beds")
    if len(set(slots)) != len(slots):
        raise InventoryError(f"Duplicate bed numbers: {', '.join(parts)}")

    prefix, highest = max(slots, key=lambda slot: slot[1])
    slots.extend((prefix, n) for n in range(highest + 1, highest + 1 + total_beds - len(slots)))
    return [f"{prefix}{n:03d}" for prefix, n in slots]


def expand_room_numbers(room_number: str) -> list[str]:
    """``RA1-RA64`` -> ``RA1..RA64``, ``201-234`` -> ``201..234``; anything else is a single room."""
    room_number = str(room_number).strip()
    match = _RANGE.match(room_number)
    if not match:
        return [room_number]

    prefix, start, end_prefix, end = match.groups()
    if end_prefix and end_prefix != prefix:
        raise InventoryError(f"Mismatched room range: {room_number}")
    start_n, end_n = int(start), int(end)
    if start_n > end_n:
        raise InventoryError(f"Room range runs backwards: {room_number}")
    return [f"{prefix}{n}" for n in range(start_n, end_n + 1)]


def _planned_rooms(row: dict[str, Any]) -> list[Room]:
    wing = str(row["wing"]).strip()
    gender = row["gender"].value if isinstance(row["gender"], Gender) else str(row["gender"])
    if gender not in Gender.values():
        raise InventoryError(f"Unknown gender: {gender}")
    total_beds = int(row["total_beds"])
    if total_beds < 1:
        raise InventoryError(f"total_beds must be >= 1 for {wing} {row['room_number']}")
    raw_beds = row.get("bed_numbers")
    is_vip = is_reserved(raw_beds) or bool(row.get("is_vip_room", False))
    bed_numbers = parse_bed_numbers(raw_beds, total_beds)
    return [
        Room(
            wing=wing,
            room_number=room_number,
            gender=gender,
            total_beds=total_beds,
            available_beds=total_beds,
            bed_numbers=list(bed_numbers),
            is_vip_room=is_vip,
        )
        for room_number in expand_room_numbers(row["room_number"])
    ]


def import_rooms(rows: Iterable[dict[str, Any]]) -> ImportReport:
    """Create rooms from import rows, skipping rooms that already exist.

    Each row needs ``wing``, ``room_number``, ``gender`` and ``total_beds``
    and may carry ``bed_numbers``. Every row is checked before anything is
    written, so a bad row rejects the whole import.
    """
    planned = [room for row in rows for room in _planned_rooms(row)]

    report = ImportReport()
    for room in planned:
        label = f"{room.wing}-{room.room_number} ({room.gender})"
        if Room.objects(wing=room.wing, room_number=room.room_number, gender=room.gender).first():
            report.skipped.append(label)
            continue
        try:
            room.save(force_insert=True)
        except NotUniqueError:
            report.skipped.append(label)
            continue
        report.created.append(label)
        publish_change("rooms", room.id, ChangeAction.CREATED)

    logger.info("Rooms imported | created=%s | skipped=%s", len(report.created), len(report.skipped))
    return report


def import_tags(tag_numbers: Iterable[str]) -> ImportReport:
    report = ImportReport()
    for raw in tag_numbers:
        tag_number = str(raw).strip()
        if not tag_number:
            continue
        if Tag.objects(tag_number=tag_number).first():
            report.skipped.append(tag_number)
            continue
        tag = Tag(tag_number=tag_number, is_assigned=False)
        try:
            tag.save(force_insert=True)
        except NotUniqueError:
            report.skipped.append(tag_number)
            continue
        report.created.append(tag_number)
        publish_change("tags", tag.id, ChangeAction.CREATED)

    logger.info("Tags imported | created=%s | skipped=%s", len(report.created), len(report.skipped))
    return report


def _free_beds(gender: str) -> int:
    return sum(room.available_beds for room in Room.objects(gender=gender, available_beds__gt=0).only("available_beds"))


def availability(gender: str) -> dict[str, Any]:
    """What a registrant of `gender` could be given right now."""
    policy = load_assignment_policy()
    beds = _free_beds(gender)
    fallback_gender: Optional[str] = None
    if beds == 0 and policy.allow_cross_gender:
        fallback_gender = CROSS_GENDER_FALLBACK.get(gender)
        if fallback_gender:
            beds = _free_beds(fallback_gender)
    tags = Tag.objects(is_assigned=False).count()
    return {
        "gender": gender,
        "available_beds": beds,
        "available_tags": tags,
        "cross_gender_fallback": fallback_gender if beds else None,
        "room_available": beds > 0,
        "tag_available": tags > 0,
    }


def registration_stats() -> dict[str, Any]:
    pending = AssignmentStatus.PENDING.value
    assigned = AssignmentStatus.ASSIGNED.value
    total_beds = sum(room.total_beds for room in Room.objects.only("total_beds"))
    free_beds = sum(room.available_beds for room in Room.objects.only("available_beds"))
    total_tags = Tag.objects.count()
    free_tags = Tag.objects(is_assigned=False).count()
    return {
        "users": {
            "total": User.objects.count(),
            "male": User.objects(gender=Gender.MALE.value).count(),
            "female": User.objects(gender=Gender.FEMALE.value).count(),
            "vip": User.objects(is_vip=True).count(),
        },
        "rooms": {
            "total": Room.objects.count(),
            "total_beds": total_beds,
            "available_beds": free_beds,
            "occupied_beds": total_beds - free_beds,
            "users_assigned": User.objects(room_status=assigned).count(),
            "users_pending": User.objects(room_status=pending).count(),
        },
        "tags": {
            "total": total_tags,
            "available": free_tags,
            "assigned": total_tags - free_tags,
            "users_assigned": User.objects(tag_status=assigned).count(),
            "users_pending": User.objects(tag_status=pending).count(),
        },
    }
