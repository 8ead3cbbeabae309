from mongoengine import BooleanField, IntField, ListField, StringField, ValidationError

from hostel.models.base import BaseDocument
from hostel.utils.base import Gender


def default_bed_numbers(total_beds: int) -> list[str]:
    return [f"{i:03d}" for i in range(1, total_beds + 1)]


class Room(BaseDocument):
    """Room document.

    Fields:
    - wing/room_number (str), gender (Male/Female)
    - total_beds (int), available_beds (int): 0 <= available_beds <= total_beds
    - bed_numbers (list[str]): explicit bed slots, empty means sequential 001..total_beds
    - occupied_beds (list[str]): slots currently held
    - is_vip_room (bool): reserved room
    Validate enforces available_beds == total_beds - len(occupied_beds).
    """
    wing = StringField(required=True, null=False)
    room_number = StringField(required=True, null=False, db_field="roomNumber")
    gender = StringField(required=True, null=False, choices=Gender.choices())
    total_beds = IntField(required=True, null=False, min_value=1, db_field="totalBeds")
    # Bounds live in validate(): `dec__` updates are checked as a negative value against the field.
    available_beds = IntField(required=True, null=False, db_field="availableBeds")
    bed_numbers = ListField(StringField(), null=False, default=list, db_field="bedNumbers")
    occupied_beds = ListField(StringField(), null=False, default=list, db_field="occupiedBeds")
    is_vip_room = BooleanField(required=True, null=False, default=False, db_field="isVipRoom")

    meta = {
        "collection": "rooms",
        "indexes": [
            {"fields": ["wing", "room_number", "gender"], "unique": True},
            {"fields": ["gender", "available_beds"]},
        ],
    }

    def validate(self, clean=True):
        super().validate(clean)
        if self.available_beds < 0:
            raise ValidationError("available_beds cannot be negative")
        if self.available_beds > self.total_beds:
            raise ValidationError("available_beds cannot exceed total_beds")
        if self.bed_numbers and len(self.bed_numbers) != self.total_beds:
            raise ValidationError("bed_numbers must list exactly total_beds slots")
        if self.available_beds != self.total_beds - len(self.occupied_beds or []):
            raise ValidationError("available_beds must equal total_beds minus occupied beds")

    def bed_slots(self) -> list[str]:
        return list(self.bed_numbers) if self.bed_numbers else default_bed_numbers(self.total_beds)

    def next_free_bed(self) -> str | None:
        occupied = set(self.occupied_beds or [])
        for slot in self.bed_slots():
            if slot not in occupied:
                return slot
        return None
