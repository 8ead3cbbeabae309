from __future__ import annotations

import re
from datetime import date
from typing import Optional

from bson.objectid import ObjectId
from mongoengine import NotUniqueError, ValidationError
from pydantic import BaseModel, EmailStr, field_validator
from pymongo.errors import PyMongoError

from hostel.models.user import User
from hostel.services.assignment import AssignmentOutcome, Registrant, attempt_assign, release_outcome
from hostel.services.notifications import publish_change
from hostel.services.policy import FormPolicy, load_assignment_policy, load_form_policy
from hostel.utils.base import ChangeAction, Gender, normalize_state
from hostel.utils.logger import get_logger


logger = get_logger(__name__)


class RegistrationValidationError(Exception):
    """Raised when a submission breaks the form policy. Never reaches assignment."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("; ".join(errors))


class DuplicateRegistrationError(Exception):
    """Raised when the NIN is already registered."""


class PersistenceUnavailableError(Exception):
    """Raised when the store cannot be reached. The submission can be retried."""


class RegistrationForm(BaseModel):
    """Registration form payload.

    Field-level rules are checked here; rules that depend on the admin
    settings (required room/tag, locked state) are applied by `apply_form_policy`.
    """
    first_name: str
    surname: str
    middle_name: Optional[str] = None
    dob: date
    gender: Gender
    phone: str
    email: EmailStr
    nin: str
    state_of_origin: Optional[str] = None
    lga: str
    is_vip: bool = False

    wants_room: bool = True
    wants_tag: bool = True
    preferred_room_id: Optional[str] = None
    preferred_tag_number: Optional[str] = None

    @field_validator("first_name", "surname", "lga")
    @classmethod
    def _required_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("middle_name")
    @classmethod
    def _optional_text(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("dob")
    @classmethod
    def _not_in_future(cls, value: date) -> date:
        if value > date.today():
            raise ValueError("date of birth cannot be in the future")
        return value

    @field_validator("phone")
    @classmethod
    def _phone_digits(cls, value: str) -> str:
        digits = re.sub(r"\D", "", value)
        if not 10 <= len(digits) <= 11:
            raise ValueError("phone number must be 10-11 digits")
        return digits

    @field_validator("nin")
    @classmethod
    def _nin_digits(cls, value: str) -> str:
        value = value.strip()
        if not re.fullmatch(r"\d{11}", value):
            raise ValueError("NIN must be exactly 11 digits")
        return value


def apply_form_policy(form: RegistrationForm, policy: FormPolicy) -> RegistrationForm:
    errors: list[str] = []

    if policy.room_required and not form.wants_room:
        errors.append("Room selection is required")
    if policy.tag_required and not form.wants_tag:
        errors.append("Tag selection is required")

    state = normalize_state(form.state_of_origin)
    if form.state_of_origin and state is None:
        errors.append(f"Unknown state of origin: {form.state_of_origin}")
    elif policy.locked_state:
        if state is None:
            state = policy.locked_state
        elif state != policy.locked_state:
            errors.append(f"State of origin is locked to {policy.locked_state}")
    elif state is None:
        errors.append("State of origin is required")

    if errors:
        raise RegistrationValidationError(errors)
    return form.model_copy(update={"state_of_origin": state})


def _release_reservations(outcome: AssignmentOutcome, user_id: ObjectId) -> None:
    """Give back what was reserved for a user that was never written.

    A store failure here leaves the reservation held with no user; it is
    logged so `find_inconsistencies` output can be matched to it.
    """
    try:
        release_outcome(outcome, user_id)
    except PyMongoError as exc:
        logger.error(
            "Reservation leaked, release failed | user_id=%s | assignment=%s | error=%s",
            user_id,
            outcome.to_dict(),
            exc,
        )


def register(form: RegistrationForm) -> tuple[User, AssignmentOutcome]:
    """Validate, assign, and persist a registrant.

    The user document is written in a single insert after assignment. If that
    insert fails, every reservation made for it is released before the error
    is raised. A store outage always surfaces as `PersistenceUnavailableError`,
    even when the release itself cannot reach the store.
    """
    try:
        form = apply_form_policy(form, load_form_policy())
        if User.objects(nin=form.nin).first():
            raise DuplicateRegistrationError("NIN already registered")
        policy = load_assignment_policy()
    except PyMongoError as exc:
        raise PersistenceUnavailableError("Registration store unavailable, please retry") from exc

    user_id = ObjectId()
    registrant = Registrant(
        user_id=user_id,
        gender=form.gender.value,
        is_vip=form.is_vip,
        preferred_room_id=form.preferred_room_id,
        preferred_tag_number=form.preferred_tag_number,
    )
    try:
        outcome = attempt_assign(registrant, policy, room=form.wants_room, tag=form.wants_tag)
    except PyMongoError as exc:
        raise PersistenceUnavailableError("Registration store unavailable, please retry") from exc

    user = User(
        id=user_id,
        first_name=form.first_name,
        surname=form.surname,
        middle_name=form.middle_name,
        dob=form.dob,
        gender=form.gender.value,
        phone=form.phone,
        email=form.email,
        nin=form.nin,
        state_of_origin=form.state_of_origin,
        lga=form.lga,
        is_vip=form.is_vip,
        **outcome.user_fields(),
    )
    try:
        user.save(force_insert=True)
    except NotUniqueError as exc:
        _release_reservations(outcome, user_id)
        raise DuplicateRegistrationError("NIN already registered") from exc
    except ValidationError as exc:
        _release_reservations(outcome, user_id)
        raise RegistrationValidationError([str(exc)]) from exc
    except PyMongoError as exc:
        logger.error("User write failed, releasing reservations | user_id=%s | error=%s", user_id, exc)
        _release_reservations(outcome, user_id)
        raise PersistenceUnavailableError("Registration store unavailable, please retry") from exc

    logger.info(
        "Registered user | user_id=%s | gender=%s | room_status=%s | tag_status=%s",
        user.id,
        user.gender,
        user.room_status,
        user.tag_status,
    )
    publish_change("users", user.id, ChangeAction.CREATED)
    return user, outcome
