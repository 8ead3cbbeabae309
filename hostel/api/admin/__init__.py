from typing import Optional, Union

from bson.objectid import ObjectId
from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from hostel.models.room import Room
from hostel.models.settings import DefaultStateSettings, RegistrationFormSettings, RoomSettings
from hostel.models.tag import Tag
from hostel.models.user import User
from hostel.services.inventory import InventoryError, import_rooms, import_tags, registration_stats
from hostel.services.notifications import get_feed, sse_stream
from hostel.services.reassignment import UserNotFoundError, reassign, release_assignment
from hostel.services.policy import (
    PolicyValidationError,
    update_default_state_settings,
    update_registration_form_settings,
    update_room_settings,
)
from hostel.utils.base import AssignmentStatus, Gender


router = APIRouter()


@router.get("/users")
def list_users(
    room_status: Optional[AssignmentStatus] = None,
    tag_status: Optional[AssignmentStatus] = None,
):
    """ADMIN: List registrants in registration order, optionally by assignment status."""
    query = {}
    if room_status:
        query["room_status"] = room_status.value
    if tag_status:
        query["tag_status"] = tag_status.value
    users: list[User] = User.objects(**query).order_by("created_at", "id")
    return [u.to_output() for u in users]


@router.get("/users/{user_id}")
def get_user(user_id: str) -> dict:
    """ADMIN: Fetch one registrant."""
    user: User | None = User.objects(id=user_id).first() if ObjectId.is_valid(user_id) else None
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user.to_output()


class ReleaseBody(BaseModel):
    room: bool = True
    tag: bool = True
    requeue: bool = True


@router.post("/users/{user_id}/release")
def post_release(user_id: str, body: ReleaseBody) -> dict:
    """ADMIN: Take the bed and/or tag away from a registrant and free them."""
    try:
        user = release_assignment(user_id, **body.model_dump())
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    return user.to_output()


class ReassignBody(BaseModel):
    room: bool = True
    tag: bool = True
    preferred_room_id: Optional[str] = None
    preferred_tag_number: Optional[str] = None


@router.post("/users/{user_id}/reassign")
def post_reassign(user_id: str, body: ReassignBody) -> dict:
    """ADMIN: Release and immediately reassign. Without capacity the field stays pending."""
    try:
        user = reassign(user_id, **body.model_dump())
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    return user.to_output()


@router.get("/rooms")
def list_rooms(gender: Optional[Gender] = None):
    """ADMIN: List rooms in allocation order."""
    rooms: list[Room] = Room.objects(gender=gender.value) if gender else Room.objects
    return [r.to_output() for r in rooms.order_by("id")]


@router.get("/tags")
def list_tags(is_assigned: Optional[bool] = None):
    """ADMIN: List tags in serial order."""
    tags: list[Tag] = Tag.objects(is_assigned=is_assigned) if is_assigned is not None else Tag.objects
    return [t.to_output() for t in tags.order_by("number_key", "tag_number")]


@router.get("/stats")
def get_stats() -> dict:
    """ADMIN: Dashboard counters for users, beds and tags."""
    return registration_stats()


class RoomSettingsBody(BaseModel):
    allow_cross_gender: Optional[bool] = None
    vip_priority: Optional[bool] = None


@router.get("/settings/room")
def get_room_settings() -> dict:
    return RoomSettings.load().to_output()


@router.put("/settings/room")
def put_room_settings(body: RoomSettingsBody) -> dict:
    """ADMIN: Merge room policy flags. Existing occupants are never moved."""
    return update_room_settings(**body.model_dump()).to_output()


class RegistrationFormSettingsBody(BaseModel):
    room_required: Optional[bool] = None
    tag_required: Optional[bool] = None


@router.get("/settings/registration-form")
def get_registration_form_settings() -> dict:
    return RegistrationFormSettings.load().to_output()


@router.put("/settings/registration-form")
def put_registration_form_settings(body: RegistrationFormSettingsBody) -> dict:
    return update_registration_form_settings(**body.model_dump()).to_output()


class DefaultStateSettingsBody(BaseModel):
    is_active: Optional[bool] = None
    default_state: Optional[str] = None


@router.get("/settings/default-state")
def get_default_state_settings() -> dict:
    return DefaultStateSettings.load().to_output()


@router.put("/settings/default-state")
def put_default_state_settings(body: DefaultStateSettingsBody) -> dict:
    """ADMIN: Lock or unlock the state of origin on the registration form."""
    try:
        updated = update_default_state_settings(**body.model_dump())
    except PolicyValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return updated.to_output()


class RoomImportRow(BaseModel):
    wing: str
    room_number: str
    gender: Gender
    total_beds: int = Field(ge=1)
    bed_numbers: Optional[Union[list[str], str]] = None
    is_vip_room: bool = False


class RoomImportBody(BaseModel):
    rooms: list[RoomImportRow]


@router.post("/rooms/import", status_code=201)
def post_rooms_import(body: RoomImportBody) -> dict:
    """ADMIN: Create rooms from import rows. Existing rooms are skipped."""
    try:
        report = import_rooms(row.model_dump() for row in body.rooms)
    except InventoryError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return report.to_dict()


class TagImportBody(BaseModel):
    tag_numbers: list[str]


@router.post("/tags/import", status_code=201)
def post_tags_import(body: TagImportBody) -> dict:
    """ADMIN: Create tags. Existing tag numbers are skipped."""
    return import_tags(body.tag_numbers).to_dict()


@router.get("/events")
async def stream_events() -> StreamingResponse:
    """ADMIN: Server-sent stream of document changes."""
    return StreamingResponse(
        sse_stream(get_feed()),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
