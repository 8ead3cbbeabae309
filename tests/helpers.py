from __future__ import annotations

from datetime import date
from typing import Optional

from hostel.models.room import Room
from hostel.models.tag import Tag
from hostel.services.registration import RegistrationForm


def make_room(
    room_number: str,
    gender: str = "Male",
    total_beds: int = 2,
    available_beds: Optional[int] = None,
    wing: str = "A",
    is_vip_room: bool = False,
    bed_numbers: Optional[list[str]] = None,
) -> Room:
    available = total_beds if available_beds is None else available_beds
    slots = bed_numbers or [f"{i:03d}" for i in range(1, total_beds + 1)]
    room = Room(
        wing=wing,
        room_number=room_number,
        gender=gender,
        total_beds=total_beds,
        available_beds=available,
        bed_numbers=bed_numbers or [],
        occupied_beds=slots[: total_beds - available],
        is_vip_room=is_vip_room,
    )
    room.save()
    return room


def make_tag(tag_number: str, is_assigned: bool = False) -> Tag:
    tag = Tag(tag_number=tag_number, is_assigned=is_assigned)
    tag.save()
    return tag


def make_form(nin: str, gender: str = "Male", **overrides) -> RegistrationForm:
    data = {
        "first_name": "Ada",
        "surname": "Okafor",
        "dob": date(2000, 1, 15),
        "gender": gender,
        "phone": "08012345678",
        "email": f"user{nin}@example.com",
        "nin": nin,
        "state_of_origin": "Lagos",
        "lga": "Ikeja",
    }
    data.update(overrides)
    return RegistrationForm(**data)
