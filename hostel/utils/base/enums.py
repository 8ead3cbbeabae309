from enum import Enum


class BaseEnum(Enum):
    @classmethod
    def choices(cls):
        return [(item.value, item.name) for item in cls]

    @classmethod
    def values(cls) -> list[str]:
        return [item.value for item in cls]


class Gender(BaseEnum):
    MALE = "Male"
    FEMALE = "Female"


class AssignmentStatus(BaseEnum):
    ASSIGNED = "assigned"
    PENDING = "pending"


class ChangeAction(BaseEnum):
    CREATED = "created"
    UPDATED = "updated"
    ASSIGNED = "assigned"
    CONSUMED = "consumed"
    RELEASED = "released"


# Cross-gender fallback only runs in this direction.
CROSS_GENDER_FALLBACK: dict[str, str] = {
    Gender.MALE.value: Gender.FEMALE.value,
}
