from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from hostel.models.settings import DefaultStateSettings, RegistrationFormSettings, RoomSettings
from hostel.services.notifications import publish_change
from hostel.utils.base import ChangeAction, normalize_state
from hostel.utils.logger import get_logger


logger = get_logger(__name__)


class PolicyValidationError(Exception):
    """Raised when a settings update would leave a policy unusable."""


@dataclass(frozen=True)
class AssignmentPolicy:
    """Snapshot of the room policy taken once per assignment attempt."""
    allow_cross_gender: bool = False
    vip_priority: bool = False


DEGRADED_POLICY = AssignmentPolicy()


@dataclass(frozen=True)
class FormPolicy:
    room_required: bool = True
    tag_required: bool = True
    locked_state: Optional[str] = None


def load_assignment_policy() -> AssignmentPolicy:
    """Read roomSettings, falling back to the degraded policy if the read fails."""
    try:
        room_settings = RoomSettings.load()
    except Exception as exc:
        logger.warning("Room settings unreadable, using degraded policy | error=%s", exc)
        return DEGRADED_POLICY
    return AssignmentPolicy(
        allow_cross_gender=bool(room_settings.allow_cross_gender),
        vip_priority=bool(room_settings.vip_priority),
    )


def load_form_policy() -> FormPolicy:
    form_settings = RegistrationFormSettings.load()
    state_settings = DefaultStateSettings.load()
    locked_state = None
    if state_settings.is_active and state_settings.default_state:
        locked_state = state_settings.default_state
    return FormPolicy(
        room_required=bool(form_settings.room_required),
        tag_required=bool(form_settings.tag_required),
        locked_state=locked_state,
    )


def update_room_settings(
    allow_cross_gender: Optional[bool] = None,
    vip_priority: Optional[bool] = None,
) -> RoomSettings:
    updated = RoomSettings.merge(allow_cross_gender=allow_cross_gender, vip_priority=vip_priority)
    logger.info(
        "Room settings updated | allow_cross_gender=%s | vip_priority=%s",
        updated.allow_cross_gender,
        updated.vip_priority,
    )
    publish_change("settings", RoomSettings.DOCUMENT_ID, ChangeAction.UPDATED)
    return updated


def update_registration_form_settings(
    room_required: Optional[bool] = None,
    tag_required: Optional[bool] = None,
) -> RegistrationFormSettings:
    updated = RegistrationFormSettings.merge(room_required=room_required, tag_required=tag_required)
    logger.info(
        "Registration form settings updated | room_required=%s | tag_required=%s",
        updated.room_required,
        updated.tag_required,
    )
    publish_change("settings", RegistrationFormSettings.DOCUMENT_ID, ChangeAction.UPDATED)
    return updated


def update_default_state_settings(
    is_active: Optional[bool] = None,
    default_state: Optional[str] = None,
) -> DefaultStateSettings:
    state = None
    if default_state:
        state = normalize_state(default_state)
        if state is None:
            raise PolicyValidationError(f"Unknown state: {default_state}")

    current = DefaultStateSettings.load()
    will_be_active = current.is_active if is_active is None else is_active
    effective_state = state if state is not None else current.default_state
    if will_be_active and not effective_state:
        raise PolicyValidationError("Select a default state before activating the lock")

    # Deactivating clears the stored state.
    if is_active is False:
        state = ""

    updated = DefaultStateSettings.merge(is_active=is_active, default_state=state)
    logger.info(
        "Default state settings updated | is_active=%s | default_state=%s",
        updated.is_active,
        updated.default_state,
    )
    publish_change("settings", DefaultStateSettings.DOCUMENT_ID, ChangeAction.UPDATED)
    return updated
