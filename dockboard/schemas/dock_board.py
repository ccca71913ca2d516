"""
Dock Board Schemas.

Request bodies for:
- Trailers and staging
- Moves and queues
- Carriers
- Doors and yard slots
- Facility setup
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import Field, field_validator

from dockboard.config import settings
from dockboard.core.sanitize import sanitize_input, sanitize_optional
from dockboard.models.facility import DoorType, TrailerLocation, TrailerStatus
from dockboard.schemas.base import BaseCreateSchema, BaseUpdateSchema

# Free-text trailer attributes that are HTML-escaped before storage
TRAILER_TEXT_FIELDS = (
    "number",
    "contents",
    "load_number",
    "customer",
    "driver_name",
    "driver_phone",
    "appointment_time",
)

DoorRef = Union[str, int]


def _required_text(value: str, name: str) -> str:
    cleaned = sanitize_input(value)
    if not cleaned:
        raise ValueError(f"{name} is required")
    return cleaned


# ============================================================================
# TRAILER SCHEMAS
# ============================================================================

class TrailerCreate(BaseCreateSchema):
    """Schema for creating a trailer in the unassigned yard."""
    carrier: str
    carrier_id: Optional[str] = None
    number: Optional[str] = None
    status: TrailerStatus = TrailerStatus.EMPTY
    contents: Optional[str] = None
    load_number: Optional[str] = None
    customer: Optional[str] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    appointment_time: Optional[str] = None
    is_live: bool = False

    @field_validator("carrier")
    @classmethod
    def validate_carrier(cls, v):
        return _required_text(v, "Carrier")

    @field_validator(*TRAILER_TEXT_FIELDS)
    @classmethod
    def clean_text(cls, v):
        return sanitize_optional(v)

    def to_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class StagingCreate(TrailerCreate):
    """Schema for creating a trailer straight into staging; staged trailers arrive loaded."""
    status: TrailerStatus = TrailerStatus.LOADED


class TrailerUpdate(BaseUpdateSchema):
    """Schema for updating a trailer."""
    carrier: Optional[str] = None
    carrier_id: Optional[str] = None
    number: Optional[str] = None
    status: Optional[TrailerStatus] = None
    contents: Optional[str] = None
    load_number: Optional[str] = None
    customer: Optional[str] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    appointment_time: Optional[str] = None
    is_live: Optional[bool] = None
    created_at: Optional[datetime] = None

    @field_validator("carrier")
    @classmethod
    def validate_carrier(cls, v):
        if v is None:
            return v
        return _required_text(v, "Carrier")

    @field_validator(*TRAILER_TEXT_FIELDS)
    @classmethod
    def clean_text(cls, v):
        return sanitize_optional(v)

    def to_updates(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# ============================================================================
# MOVE & QUEUE SCHEMAS
# ============================================================================

class MoveToDoor(BaseCreateSchema):
    """Door may be a door id or a door number."""
    trailer_id: str
    door_id: Optional[DoorRef] = None
    door_number: Optional[int] = None

    @property
    def door_ref(self) -> Optional[DoorRef]:
        return self.door_id if self.door_id is not None else self.door_number


class MoveToYard(BaseCreateSchema):
    trailer_id: str
    from_location: Optional[TrailerLocation] = None


class MoveToYardSlot(BaseCreateSchema):
    """Slot may be a slot id or a slot number."""
    trailer_id: str
    slot_id: Optional[Union[str, int]] = None
    slot_number: Optional[int] = None

    @property
    def slot_ref(self) -> Optional[Union[str, int]]:
        return self.slot_id if self.slot_id is not None else self.slot_number


class TrailerRef(BaseCreateSchema):
    trailer_id: str


class QueueRequest(BaseCreateSchema):
    """Queue a staged or appointment trailer for a door."""
    trailer_id: str
    target_door_id: DoorRef


class ReassignRequest(BaseCreateSchema):
    trailer_id: str
    new_door_id: DoorRef


class AssignNextRequest(BaseCreateSchema):
    door_id: DoorRef


class ReorderRequest(BaseCreateSchema):
    ids: List[str] = Field(default_factory=list)


# ============================================================================
# CARRIER SCHEMAS
# ============================================================================

class CarrierCreate(BaseCreateSchema):
    name: str
    mc_number: str = ""
    favorite: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _required_text(v, "Carrier name")

    @field_validator("mc_number")
    @classmethod
    def clean_mc_number(cls, v):
        return sanitize_input(v) or ""


class FavoriteUpdate(BaseCreateSchema):
    favorite: bool


# ============================================================================
# DOOR & YARD SLOT SCHEMAS
# ============================================================================

class DoorCreate(BaseCreateSchema):
    number: Optional[int] = Field(None, ge=0)
    type: DoorType = DoorType.NORMAL
    label_text: Optional[str] = None
    in_service: bool = True

    @field_validator("label_text")
    @classmethod
    def clean_label(cls, v):
        return sanitize_optional(v)


class DoorUpdate(BaseUpdateSchema):
    number: Optional[int] = Field(None, ge=0)
    type: Optional[DoorType] = None
    label_text: Optional[str] = None
    in_service: Optional[bool] = None
    order: Optional[int] = None

    @field_validator("label_text")
    @classmethod
    def clean_label(cls, v):
        return sanitize_optional(v)

    def to_updates(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class YardSlotCreate(BaseCreateSchema):
    number: Optional[int] = Field(None, ge=0)


class YardSlotUpdate(BaseCreateSchema):
    number: int = Field(..., ge=0)


# ============================================================================
# SETUP SCHEMAS
# ============================================================================

class SetupRequest(BaseCreateSchema):
    """First-run facility layout. Ranges are checked by the state machine."""
    num_doors: int = settings.DEFAULT_DOOR_COUNT
    num_yard_slots: int = settings.DEFAULT_YARD_SLOT_COUNT
    num_dumpsters: int = 0
    num_ramps: int = 0
    door_start: int = 1
    yard_start: int = 1
