import re

from mongoengine import BooleanField, IntField, ObjectIdField, StringField

from hostel.models.base import BaseDocument


def tag_number_key(tag_number: str) -> int:
    digits = re.sub(r"\D", "", tag_number or "")
    return int(digits) if digits else 0


class Tag(BaseDocument):
    """Identification tag.

    Fields: tag_number (unique), is_assigned, assigned_user_id (lookup only),
    number_key (numeric part of tag_number, used for serial ordering).
    """
    tag_number = StringField(required=True, null=False, unique=True, db_field="tagNumber")
    number_key = IntField(required=True, null=False, default=0, db_field="numberKey")
    is_assigned = BooleanField(required=True, null=False, default=False, db_field="isAssigned")
    assigned_user_id = ObjectIdField(required=False, null=True, db_field="assignedUserId")

    meta = {
        "collection": "tags",
        "indexes": [
            {"fields": ["tag_number"], "unique": True},
            {"fields": ["is_assigned", "number_key"]},
        ],
    }

    def clean(self):
        self.number_key = tag_number_key(self.tag_number)
