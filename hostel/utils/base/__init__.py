from hostel.utils.base.enums import (
    CROSS_GENDER_FALLBACK,
    AssignmentStatus,
    BaseEnum,
    ChangeAction,
    Gender,
)
from hostel.utils.base.states import NIGERIAN_STATES, normalize_state

__all__ = [
    "CROSS_GENDER_FALLBACK",
    "AssignmentStatus",
    "BaseEnum",
    "ChangeAction",
    "Gender",
    "NIGERIAN_STATES",
    "normalize_state",
]
