from typing import Any

from mongoengine import BooleanField, StringField

from hostel.models.base import BaseDocument, utcnow


class SettingsDocument(BaseDocument):
    """Singleton policy record stored in the `settings` collection.

    Each subclass owns one document id. Writes go through `merge`, which only
    touches the fields it is given.
    """
    id = StringField(primary_key=True)

    DOCUMENT_ID = ""

    meta = {
        "abstract": True,
    }

    @classmethod
    def load(cls):
        return cls.objects(id=cls.DOCUMENT_ID).first() or cls(id=cls.DOCUMENT_ID)

    @classmethod
    def merge(cls, **fields: Any):
        now = utcnow()
        updates = {f"set__{name}": value for name, value in fields.items() if value is not None}
        updates["set__updated_at"] = now
        updates["set_on_insert__created_at"] = now
        cls.objects(id=cls.DOCUMENT_ID).update_one(upsert=True, **updates)
        return cls.load()

    def to_output(self, fields=None, exclude=None):
        return super().to_output(fields=fields, exclude=(exclude or []) + ["created_at"])


class RoomSettings(SettingsDocument):
    DOCUMENT_ID = "roomSettings"

    allow_cross_gender = BooleanField(required=True, null=False, default=False, db_field="allowCrossGender")
    vip_priority = BooleanField(required=True, null=False, default=True, db_field="vipPriority")

    meta = {"collection": "settings", "strict": False}


class RegistrationFormSettings(SettingsDocument):
    DOCUMENT_ID = "registrationFormSettings"

    room_required = BooleanField(required=True, null=False, default=True, db_field="roomRequired")
    tag_required = BooleanField(required=True, null=False, default=True, db_field="tagRequired")

    meta = {"collection": "settings", "strict": False}


class DefaultStateSettings(SettingsDocument):
    DOCUMENT_ID = "defaultStateSettings"

    is_active = BooleanField(required=True, null=False, default=False, db_field="isActive")
    default_state = StringField(required=False, null=False, default="", db_field="defaultState")

    meta = {"collection": "settings", "strict": False}
