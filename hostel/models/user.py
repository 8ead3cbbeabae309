from mongoengine import BooleanField, DateField, EmailField, ObjectIdField, StringField

from hostel.models.base import BaseDocument
from hostel.utils.base import AssignmentStatus, Gender


class User(BaseDocument):
    """Registrant document.

    Fields:
    - first_name/surname/middle_name, dob, gender, phone, email, nin (11 digits, unique)
    - state_of_origin/lga: location of origin
    - is_vip (bool): prefers reserved rooms
    - room_id/room_number/wing/bed_number: set together when the room is assigned
    - tag_number: set when the tag is assigned
    - room_status/tag_status: assigned/pending, or None when the resource was declined
    """
    first_name = StringField(required=True, null=False, db_field="firstName")
    surname = StringField(required=True, null=False)
    middle_name = StringField(required=False, null=True, db_field="middleName")
    dob = DateField(required=True, null=False)
    gender = StringField(required=True, null=False, choices=Gender.choices())
    phone = StringField(required=True, null=False)
    email = EmailField(required=True, null=False)
    nin = StringField(required=True, null=False, unique=True, regex=r"^\d{11}$")
    state_of_origin = StringField(required=True, null=False, db_field="stateOfOrigin")
    lga = StringField(required=True, null=False)
    is_vip = BooleanField(required=True, null=False, default=False, db_field="isVip")

    room_id = ObjectIdField(required=False, null=True, db_field="roomId")
    room_number = StringField(required=False, null=True, db_field="roomNumber")
    wing = StringField(required=False, null=True)
    bed_number = StringField(required=False, null=True, db_field="bedNumber")
    tag_number = StringField(required=False, null=True, db_field="tagNumber")
    room_status = StringField(required=False, null=True, choices=AssignmentStatus.choices(), db_field="roomStatus")
    tag_status = StringField(required=False, null=True, choices=AssignmentStatus.choices(), db_field="tagStatus")

    meta = {
        "collection": "users",
        "indexes": [
            {"fields": ["nin"], "unique": True},
            {"fields": ["room_status", "created_at"]},
            {"fields": ["tag_status", "created_at"]},
        ],
    }

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.surname]
        return " ".join(part for part in parts if part)
