"""
Facility Models - doors, yard slots, trailers and carriers.

The whole facility is one aggregate (FacilityState) that is loaded, mutated
and saved as a single document. A trailer lives in exactly one of seven
containers:

- trailers[]          docked (door_id set) or in a yard slot (yard_slot_id set)
- yard_trailers[]     unassigned yard
- staging             single-capacity holding spot
- queued_trailers[]   FCFS queue, each bound to a target door
- appointment_queue[] manually ordered waitlist
- shipped_trailers[]  terminal archive
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterator, List, Optional, Tuple, Union

from pydantic import Field

from dockboard.models.base import DocumentModel, Timestamp, utc_now


# ============================================================================
# ENUMS
# ============================================================================

class TrailerStatus(str, Enum):
    """Load state of a trailer."""
    LOADED = "loaded"
    EMPTY = "empty"


class TrailerLocation(str, Enum):
    """Which container currently holds a trailer."""
    DOOR = "door"
    YARD_SLOT = "yard-slot"
    YARD = "yard"
    STAGING = "staging"
    QUEUED = "queued"
    APPOINTMENT_QUEUE = "appointment-queue"
    SHIPPED = "shipped"


class DoorType(str, Enum):
    """Dock door kinds. Blank doors are labelled spacers (dumpsters, ramps)."""
    NORMAL = "normal"
    BLANK = "blank"


EMPTY_DOOR_STATUS = "empty"


# ============================================================================
# PLACEMENTS
# ============================================================================

@dataclass(frozen=True)
class Docked:
    door_id: str
    door_number: Optional[int]


@dataclass(frozen=True)
class InYardSlot:
    slot_id: str
    slot_number: int


@dataclass(frozen=True)
class UnassignedYard:
    pass


@dataclass(frozen=True)
class Staging:
    pass


@dataclass(frozen=True)
class FcfsQueue:
    target_door_id: str
    target_door_number: Optional[int]
    queued_at: datetime


@dataclass(frozen=True)
class AppointmentQueue:
    queued_at: datetime


@dataclass(frozen=True)
class Shipped:
    shipped_at: datetime
    previous_location: Optional[str]


Placement = Union[Docked, InYardSlot, UnassignedYard, Staging, FcfsQueue, AppointmentQueue, Shipped]

_PLACEMENT_LOCATIONS = {
    Docked: TrailerLocation.DOOR,
    InYardSlot: TrailerLocation.YARD_SLOT,
    UnassignedYard: TrailerLocation.YARD,
    Staging: TrailerLocation.STAGING,
    FcfsQueue: TrailerLocation.QUEUED,
    AppointmentQueue: TrailerLocation.APPOINTMENT_QUEUE,
    Shipped: TrailerLocation.SHIPPED,
}


# ============================================================================
# DOCUMENTS
# ============================================================================

class Door(DocumentModel):
    """A dock door. trailer_id mirrors the docked trailer's door_id."""
    id: str
    number: Optional[int] = None
    order: int = 0
    trailer_id: Optional[str] = None
    status: str = EMPTY_DOOR_STATUS
    in_service: bool = True
    type: DoorType = DoorType.NORMAL
    label_text: Optional[str] = None

    @property
    def accepts_trailers(self) -> bool:
        return self.in_service and self.type != DoorType.BLANK

    @property
    def label(self) -> str:
        if self.number is not None:
            return f"Door {self.number}"
        return self.label_text or self.id

    def occupy(self, trailer: "Trailer") -> None:
        self.trailer_id = trailer.id
        self.status = trailer.status.value

    def release(self) -> None:
        self.trailer_id = None
        self.status = EMPTY_DOOR_STATUS


class YardSlot(DocumentModel):
    """A numbered yard parking slot."""
    id: str
    number: int
    order: Optional[int] = None
    trailer_id: Optional[str] = None


class Trailer(DocumentModel):
    """A trailer and its presence fields; `location` names its container."""
    id: str
    number: Optional[str] = None
    carrier: str
    carrier_id: Optional[str] = None
    status: TrailerStatus = TrailerStatus.EMPTY
    contents: Optional[str] = None
    load_number: Optional[str] = None
    customer: Optional[str] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    appointment_time: Optional[str] = None
    is_live: bool = False
    location: TrailerLocation = TrailerLocation.YARD
    created_at: Timestamp = Field(default_factory=utc_now)
    dwell_resets: List[Timestamp] = Field(default_factory=list)

    door_id: Optional[str] = None
    door_number: Optional[int] = None
    yard_slot_id: Optional[str] = None
    yard_slot_number: Optional[int] = None
    target_door_id: Optional[str] = None
    target_door_number: Optional[int] = None
    queued_at: Optional[Timestamp] = None
    shipped_at: Optional[Timestamp] = None
    previous_location: Optional[str] = None

    @property
    def placement(self) -> Placement:
        """The trailer's location as an explicit variant."""
        if self.location == TrailerLocation.DOOR:
            return Docked(self.door_id, self.door_number)
        if self.location == TrailerLocation.YARD_SLOT:
            return InYardSlot(self.yard_slot_id, self.yard_slot_number)
        if self.location == TrailerLocation.STAGING:
            return Staging()
        if self.location == TrailerLocation.QUEUED:
            return FcfsQueue(self.target_door_id, self.target_door_number, self.queued_at)
        if self.location == TrailerLocation.APPOINTMENT_QUEUE:
            return AppointmentQueue(self.queued_at)
        if self.location == TrailerLocation.SHIPPED:
            return Shipped(self.shipped_at, self.previous_location)
        return UnassignedYard()

    def place(self, placement: Placement) -> None:
        """Clear every presence field, then set the ones the variant owns."""
        self.door_id = None
        self.door_number = None
        self.yard_slot_id = None
        self.yard_slot_number = None
        self.target_door_id = None
        self.target_door_number = None
        self.queued_at = None
        self.location = _PLACEMENT_LOCATIONS[type(placement)]

        if isinstance(placement, Docked):
            self.door_id = placement.door_id
            self.door_number = placement.door_number
        elif isinstance(placement, InYardSlot):
            self.yard_slot_id = placement.slot_id
            self.yard_slot_number = placement.slot_number
        elif isinstance(placement, FcfsQueue):
            self.target_door_id = placement.target_door_id
            self.target_door_number = placement.target_door_number
            self.queued_at = placement.queued_at
        elif isinstance(placement, AppointmentQueue):
            self.queued_at = placement.queued_at
        elif isinstance(placement, Shipped):
            self.shipped_at = placement.shipped_at
            self.previous_location = placement.previous_location

    def reset_dwell(self, now: datetime, max_resets: int = 10) -> None:
        """Restart the dwell clock; only the newest resets are kept."""
        self.dwell_resets.append(now)
        if len(self.dwell_resets) > max_resets:
            self.dwell_resets = self.dwell_resets[-max_resets:]
        self.created_at = now


class Carrier(DocumentModel):
    """A trucking carrier; names are unique ignoring case."""
    id: str
    name: str
    mc_number: str = ""
    favorite: bool = False
    usage_count: int = 0
    created_at: Timestamp = Field(default_factory=utc_now)


class FacilityState(DocumentModel):
    """Current snapshot of the whole facility."""
    doors: List[Door] = Field(default_factory=list)
    trailers: List[Trailer] = Field(default_factory=list)
    carriers: List[Carrier] = Field(default_factory=list)
    yard_trailers: List[Trailer] = Field(default_factory=list)
    yard_slots: List[YardSlot] = Field(default_factory=list)
    staging: Optional[Trailer] = None
    queued_trailers: List[Trailer] = Field(default_factory=list)
    appointment_queue: List[Trailer] = Field(default_factory=list)
    shipped_trailers: List[Trailer] = Field(default_factory=list)

    @property
    def is_configured(self) -> bool:
        return bool(self.doors) or bool(self.yard_slots)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_door(self, ref: Union[str, int, None]) -> Optional[Door]:
        """Find a door by id, by number, or by the "door-<n>" id form."""
        if ref is None or ref == "":
            return None
        number = _as_int(ref)
        for door in self.doors:
            if door.id == str(ref) or door.id == f"door-{ref}":
                return door
        if number is not None:
            for door in self.doors:
                if door.number == number:
                    return door
        return None

    def find_slot(self, ref: Union[str, int, None]) -> Optional[YardSlot]:
        """Find a yard slot by id or by number."""
        if ref is None or ref == "":
            return None
        for slot in self.yard_slots:
            if slot.id == str(ref):
                return slot
        number = _as_int(ref)
        if number is not None:
            for slot in self.yard_slots:
                if slot.number == number:
                    return slot
        return None

    def find_carrier(self, carrier_id: str) -> Optional[Carrier]:
        return next((c for c in self.carriers if c.id == carrier_id), None)

    def find_carrier_by_name(self, name: str) -> Optional[Carrier]:
        lowered = name.lower()
        return next((c for c in self.carriers if c.name.lower() == lowered), None)

    def active_trailers(self) -> Iterator[Trailer]:
        """Every non-shipped trailer, docked and slotted first."""
        yield from self.trailers
        yield from self.yard_trailers
        if self.staging is not None:
            yield self.staging
        yield from self.queued_trailers
        yield from self.appointment_queue

    def containers(self) -> Iterator[Tuple[str, List[Trailer]]]:
        """The list containers by attribute name (staging excluded)."""
        yield "trailers", self.trailers
        yield "yard_trailers", self.yard_trailers
        yield "queued_trailers", self.queued_trailers
        yield "appointment_queue", self.appointment_queue
        yield "shipped_trailers", self.shipped_trailers

    def find_trailer(self, trailer_id: str) -> Optional[Trailer]:
        """Find a trailer in any container, shipped included."""
        if self.staging is not None and self.staging.id == trailer_id:
            return self.staging
        for _, container in self.containers():
            for trailer in container:
                if trailer.id == trailer_id:
                    return trailer
        return None

    def docked_trailers(self) -> List[Trailer]:
        return [t for t in self.trailers if t.door_id]


def _as_int(value: Union[str, int]) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None
