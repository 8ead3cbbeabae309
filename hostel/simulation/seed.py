from __future__ import annotations

from hostel.connections.mongo import init_mongo, close_mongo
from hostel.models.room import Room
from hostel.models.settings import DefaultStateSettings, RegistrationFormSettings, RoomSettings
from hostel.models.tag import Tag
from hostel.models.user import User
from hostel.services.inventory import import_rooms, import_tags
from hostel.utils.base import Gender


# Wing layout of the hostel: (wing, room range, gender, beds per room)
ROOM_STRUCTURE = [
    ("RA", "RA1-RA64", Gender.MALE, 1),
    ("RE", "RE1-RE48", Gender.MALE, 1),
    ("A", "201-234", Gender.MALE, 4),
    ("D&D", "D&D 120", Gender.MALE, 1),
    ("B", "401-416", Gender.MALE, 3),
    ("B", "422-433", Gender.MALE, 3),
    ("B", "401-416", Gender.FEMALE, 3),
    ("B", "422-433", Gender.FEMALE, 3),
]

TAG_COUNT = 300


def room_rows() -> list[dict]:
    return [
        {"wing": wing, "room_number": rooms, "gender": gender, "total_beds": beds}
        for wing, rooms, gender, beds in ROOM_STRUCTURE
    ]


def tag_numbers(count: int = TAG_COUNT) -> list[str]:
    return [f"TAG-{i:03d}" for i in range(1, count + 1)]


def seed() -> None:
    init_mongo()
    try:
        # Start from an empty store
        User.drop_collection()
        Room.drop_collection()
        Tag.drop_collection()
        RoomSettings.drop_collection()

        RoomSettings.merge(allow_cross_gender=False, vip_priority=True)
        RegistrationFormSettings.merge(room_required=True, tag_required=True)
        DefaultStateSettings.merge(is_active=False, default_state="")

        rooms = import_rooms(room_rows())
        tags = import_tags(tag_numbers())
        print(f"Seed completed. rooms={len(rooms.created)} tags={len(tags.created)}")
    finally:
        close_mongo()


if __name__ == "__main__":
    seed()
