from fastapi import APIRouter, HTTPException

from hostel.services.inventory import availability
from hostel.services.policy import load_form_policy
from hostel.services.registration import (
    DuplicateRegistrationError,
    PersistenceUnavailableError,
    RegistrationForm,
    RegistrationValidationError,
    register,
)
from hostel.utils.base import NIGERIAN_STATES, Gender


router = APIRouter()


@router.post("", status_code=201)
def create_registration(body: RegistrationForm) -> dict:
    """PUBLIC: Register a user and try to give them a bed and a tag."""
    try:
        user, outcome = register(body)
    except RegistrationValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors)
    except DuplicateRegistrationError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except PersistenceUnavailableError as exc:
        raise HTTPException(status_code=503, detail={"message": str(exc), "retryable": True})
    return {"user": user.to_output(), "assignment": outcome.to_dict()}


@router.get("/availability")
def get_availability(gender: Gender) -> dict:
    """PUBLIC: Beds and tags a registrant of this gender could receive right now."""
    return availability(gender.value)


@router.get("/form-config")
def get_form_config() -> dict:
    """PUBLIC: Which form sections are required and whether the state is locked."""
    policy = load_form_policy()
    return {
        "room_required": policy.room_required,
        "tag_required": policy.tag_required,
        "state_locked": policy.locked_state is not None,
        "default_state": policy.locked_state,
        "states": list(NIGERIAN_STATES),
        "genders": Gender.values(),
    }
