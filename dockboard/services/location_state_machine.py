"""
Trailer Location State Machine

This module is the SINGLE SOURCE OF TRUTH for where a trailer is.
Every change of location goes through FacilityStateMachine, which keeps
three things in step:

- container membership (exactly one of the seven containers)
- the trailer's presence fields (door, slot, queue target, shipped)
- the Door / YardSlot occupancy mirrors

The machine works on an in-memory FacilityState and a HistoryRecorder; it
never touches storage. DockBoardService loads, runs one transition and
persists the result.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from dockboard.core.exceptions import ConflictError, InvalidArgumentError, NotFoundError
from dockboard.models.base import ensure_utc, new_id
from dockboard.models.facility import (
    AppointmentQueue,
    Carrier,
    Docked,
    Door,
    DoorType,
    FacilityState,
    FcfsQueue,
    InYardSlot,
    Placement,
    Shipped,
    Staging,
    Trailer,
    TrailerLocation,
    TrailerStatus,
    UnassignedYard,
    YardSlot,
)
from dockboard.models.history import FieldChange, HistoryAction, HistoryEntry
from dockboard.services.history_service import HistoryRecorder


# =============================================================================
# TRANSITION RULES
# =============================================================================

# Format: current_location -> [locations it may move to]
LOCATION_TRANSITIONS: Dict[TrailerLocation, List[TrailerLocation]] = {
    TrailerLocation.DOOR: [
        TrailerLocation.DOOR,               # Different door
        TrailerLocation.YARD_SLOT,
        TrailerLocation.YARD,
        TrailerLocation.SHIPPED,
    ],
    TrailerLocation.YARD_SLOT: [
        TrailerLocation.DOOR,
        TrailerLocation.YARD_SLOT,          # Different slot
        TrailerLocation.YARD,
        TrailerLocation.SHIPPED,
    ],
    TrailerLocation.YARD: [
        TrailerLocation.DOOR,
        TrailerLocation.YARD_SLOT,
        TrailerLocation.STAGING,            # Check in
        TrailerLocation.SHIPPED,
    ],
    TrailerLocation.STAGING: [
        TrailerLocation.DOOR,
        TrailerLocation.YARD_SLOT,
        TrailerLocation.YARD,
        TrailerLocation.QUEUED,             # Enqueue for a door
        TrailerLocation.APPOINTMENT_QUEUE,
        TrailerLocation.SHIPPED,
    ],
    TrailerLocation.QUEUED: [
        TrailerLocation.DOOR,               # Manual or auto-assign
        TrailerLocation.YARD_SLOT,
        TrailerLocation.YARD,               # Cancel
        TrailerLocation.QUEUED,             # Reassign
        TrailerLocation.SHIPPED,
    ],
    TrailerLocation.APPOINTMENT_QUEUE: [
        TrailerLocation.DOOR,
        TrailerLocation.YARD_SLOT,
        TrailerLocation.YARD,               # Cancel
        TrailerLocation.STAGING,            # Check in
        TrailerLocation.QUEUED,
        TrailerLocation.SHIPPED,
    ],
    TrailerLocation.SHIPPED: [],            # Terminal state - no transitions
}

_CONTAINER_NAMES = {
    TrailerLocation.DOOR: "trailers",
    TrailerLocation.YARD_SLOT: "trailers",
    TrailerLocation.YARD: "yard_trailers",
    TrailerLocation.QUEUED: "queued_trailers",
    TrailerLocation.APPOINTMENT_QUEUE: "appointment_queue",
    TrailerLocation.SHIPPED: "shipped_trailers",
}

UNASSIGNED_YARD_LABEL = "Unassigned Yard"

# Facility setup limits: (minimum, maximum)
SETUP_LIMITS = {
    "num_doors": (0, 500),
    "num_yard_slots": (0, 500),
    "num_dumpsters": (0, 50),
    "num_ramps": (0, 50),
    "door_start": (1, 9999),
    "yard_start": (1, 9999),
}

# Trailer fields tracked in update history, in the order they are compared
TRACKED_FIELDS = [
    "status",
    "is_live",
    "contents",
    "carrier",
    "number",
    "load_number",
    "customer",
    "driver_name",
    "driver_phone",
    "appointment_time",
]

# Trailer attributes a null update leaves unchanged
NON_NULLABLE_FIELDS = frozenset({"status", "is_live", "carrier", "created_at"})


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def can_transition(current: TrailerLocation, new: TrailerLocation) -> bool:
    """Check if a location change is allowed."""
    return new in LOCATION_TRANSITIONS.get(current, [])


def validate_transition(trailer: Trailer, new: TrailerLocation) -> None:
    """Raise ConflictError when a trailer may not move to `new`."""
    if trailer.location == TrailerLocation.SHIPPED:
        raise ConflictError(
            "Shipped trailers cannot be moved",
            details={"trailer_id": trailer.id},
        )
    if not can_transition(trailer.location, new):
        raise ConflictError(
            f"Cannot move trailer from {trailer.location.value} to {new.value}",
            details={
                "trailer_id": trailer.id,
                "current_location": trailer.location.value,
                "requested_location": new.value,
            },
        )


def location_label(trailer: Trailer, state: Optional[FacilityState] = None) -> str:
    """Human readable location for history entries."""
    location = trailer.location
    if location == TrailerLocation.DOOR:
        door = state.find_door(trailer.door_id) if state is not None else None
        if door is not None:
            return door.label
        return f"Door {trailer.door_number}"
    if location == TrailerLocation.YARD_SLOT:
        return f"Yard Slot {trailer.yard_slot_number}"
    if location == TrailerLocation.STAGING:
        return "Staging"
    if location == TrailerLocation.QUEUED:
        return f"Queue (was for Door {trailer.target_door_number or '?'})"
    if location == TrailerLocation.APPOINTMENT_QUEUE:
        return "Appointment Queue"
    if location == TrailerLocation.SHIPPED:
        return "Shipped"
    return UNASSIGNED_YARD_LABEL


def next_in_queue(state: FacilityState, door_id: str) -> Optional[Trailer]:
    """Oldest FCFS trailer waiting for `door_id`; list position breaks ties."""
    waiting = [
        (index, trailer)
        for index, trailer in enumerate(state.queued_trailers)
        if trailer.target_door_id == door_id
    ]
    if not waiting:
        return None
    far_future = datetime.max.replace(tzinfo=timezone.utc)
    _, trailer = min(waiting, key=lambda pair: (pair[1].queued_at or far_future, pair[0]))
    return trailer


# =============================================================================
# RESULTS
# =============================================================================

@dataclass
class AutoAssignment:
    """A queued trailer pulled into a freed door."""
    trailer: Trailer
    door: Door

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trailerId": self.trailer.id,
            "carrier": self.trailer.carrier,
            "doorNumber": self.door.number,
            "doorId": self.door.id,
        }


@dataclass
class TransitionResult:
    """What a transition touched. `entry` is the primary history entry."""
    trailer: Optional[Trailer] = None
    door: Optional[Door] = None
    slot: Optional[YardSlot] = None
    carrier: Optional[Carrier] = None
    entry: Optional[HistoryEntry] = None
    auto_assigned: Optional[AutoAssignment] = None
    evicted: List[Trailer] = field(default_factory=list)
    was_queued: bool = False

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": True}
        if self.trailer is not None:
            payload["trailer"] = self.trailer.to_document()
        if self.door is not None:
            payload["door"] = self.door.to_document()
        if self.slot is not None:
            payload["yardSlot"] = self.slot.to_document()
        if self.carrier is not None:
            payload["carrier"] = self.carrier.to_document()
        if self.entry is not None:
            payload["historyEntry"] = self.entry.to_document()
        if self.auto_assigned is not None:
            payload["autoAssigned"] = self.auto_assigned.to_dict()
        if self.evicted:
            payload["evictedTrailerIds"] = [t.id for t in self.evicted]
        if self.was_queued:
            payload["wasQueued"] = True
        return payload


# =============================================================================
# STATE MACHINE
# =============================================================================

class FacilityStateMachine:
    """
    Applies one transition at a time to a FacilityState.

    Usage:
        machine = FacilityStateMachine(state, recorder, now=utc_now())
        result = machine.move_to_door(trailer_id, "5")
    """

    def __init__(
        self,
        state: FacilityState,
        recorder: HistoryRecorder,
        now: datetime,
        max_dwell_resets: int = 10,
    ):
        self.state = state
        self.recorder = recorder
        self.now = now
        self.max_dwell_resets = max_dwell_resets

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_trailer(self, trailer_id: str) -> Trailer:
        trailer = self.state.find_trailer(trailer_id)
        if trailer is None:
            raise NotFoundError("Trailer not found", details={"trailer_id": trailer_id})
        return trailer

    def get_active_trailer(self, trailer_id: str) -> Trailer:
        trailer = self.get_trailer(trailer_id)
        if trailer.location == TrailerLocation.SHIPPED:
            raise ConflictError("Trailer has already shipped", details={"trailer_id": trailer_id})
        return trailer

    def get_door(self, door_ref: Any) -> Door:
        door = self.state.find_door(door_ref)
        if door is None:
            raise NotFoundError("Door not found", details={"door": door_ref})
        return door

    def get_usable_door(self, door_ref: Any) -> Door:
        """A door that may hold a trailer."""
        door = self.get_door(door_ref)
        if not door.in_service:
            raise InvalidArgumentError("Door is out of service", details={"door_id": door.id})
        if door.type == DoorType.BLANK:
            raise InvalidArgumentError("Cannot place trailer in a blank door", details={"door_id": door.id})
        return door

    def get_slot(self, slot_ref: Any) -> YardSlot:
        slot = self.state.find_slot(slot_ref)
        if slot is None:
            raise NotFoundError("Yard slot not found", details={"slot": slot_ref})
        return slot

    def get_carrier(self, carrier_id: str) -> Carrier:
        carrier = self.state.find_carrier(carrier_id)
        if carrier is None:
            raise NotFoundError("Carrier not found", details={"carrier_id": carrier_id})
        return carrier

    # -------------------------------------------------------------------------
    # Container primitives
    # -------------------------------------------------------------------------

    def _detach(self, trailer: Trailer) -> Optional[Door]:
        """
        Remove a trailer from its container and clear every mirror that
        points at it. Returns the door it vacated, if any.
        """
        location = trailer.location
        if location == TrailerLocation.STAGING:
            if self.state.staging is not None and self.state.staging.id == trailer.id:
                self.state.staging = None
        else:
            name = _CONTAINER_NAMES[location]
            container = getattr(self.state, name)
            setattr(self.state, name, [t for t in container if t.id != trailer.id])

        freed = None
        for door in self.state.doors:
            if door.trailer_id == trailer.id:
                door.release()
                freed = door
        for slot in self.state.yard_slots:
            if slot.trailer_id == trailer.id:
                slot.trailer_id = None
        return freed

    def _attach(self, trailer: Trailer, placement: Placement) -> None:
        """Set the trailer's placement, container and mirrors."""
        trailer.place(placement)
        if isinstance(placement, Staging):
            self.state.staging = trailer
        else:
            getattr(self.state, _CONTAINER_NAMES[trailer.location]).append(trailer)

        if isinstance(placement, Docked):
            self.state.find_door(placement.door_id).occupy(trailer)
        elif isinstance(placement, InYardSlot):
            self.state.find_slot(placement.slot_id).trailer_id = trailer.id

    def _relocate(self, trailer: Trailer, placement: Placement) -> Optional[Door]:
        """Move one trailer in a single step. Returns the door it vacated."""
        freed = self._detach(trailer)
        self._attach(trailer, placement)
        return freed

    def _evict(self, occupant_id: str, reason: str, **details: Any) -> Optional[Trailer]:
        """Move a door or slot occupant to the unassigned yard."""
        occupant = self.state.find_trailer(occupant_id)
        if occupant is None:
            return None
        self._relocate(occupant, UnassignedYard())
        occupant.reset_dwell(self.now, self.max_dwell_resets)
        self.recorder.record(
            HistoryAction.MOVED_TO_YARD,
            trailer=occupant,
            to_location="Yard",
            reason=reason,
            **details,
        )
        return occupant

    def auto_assign(self, door: Optional[Door]) -> Optional[AutoAssignment]:
        """
        Pull the oldest FCFS trailer waiting for a freshly freed door.
        No-op when the door is gone, unusable, occupied or nobody waits.
        """
        if door is None or door.trailer_id or not door.accepts_trailers:
            return None
        if self.state.find_door(door.id) is None:
            return None
        trailer = next_in_queue(self.state, door.id)
        if trailer is None:
            return None
        self._relocate(trailer, Docked(door.id, door.number))
        trailer.reset_dwell(self.now, self.max_dwell_resets)
        return AutoAssignment(trailer=trailer, door=door)

    @staticmethod
    def _cascade_details(assignment: Optional[AutoAssignment]) -> Dict[str, Any]:
        if assignment is None:
            return {}
        return {
            "auto_assigned_trailer_id": assignment.trailer.id,
            "auto_assigned_to_door": assignment.door.number,
            "auto_assigned_carrier": assignment.trailer.carrier,
        }

    # =========================================================================
    # MOVES
    # =========================================================================

    def move_to_door(self, trailer_id: str, door_ref: Any) -> TransitionResult:
        """Dock a trailer, evicting any occupant and refilling the old door."""
        trailer = self.get_trailer(trailer_id)
        door = self.get_usable_door(door_ref)
        validate_transition(trailer, TrailerLocation.DOOR)
        if trailer.location == TrailerLocation.DOOR and trailer.door_id == door.id:
            raise ConflictError("Trailer is already at this door", details={"door_id": door.id})

        previous_location = location_label(trailer, self.state)
        was_queued = trailer.location in (TrailerLocation.QUEUED, TrailerLocation.APPOINTMENT_QUEUE)
        cancelled_queue = trailer.location.value if was_queued else None
        from_door_num = trailer.door_number if trailer.location == TrailerLocation.DOOR else None

        evicted = []
        if door.trailer_id and door.trailer_id != trailer.id:
            occupant = self._evict(
                door.trailer_id,
                reason="Replaced by new trailer",
                from_door=door.number,
                door_number=door.number,
            )
            if occupant is not None:
                evicted.append(occupant)

        freed = self._relocate(trailer, Docked(door.id, door.number))
        trailer.reset_dwell(self.now, self.max_dwell_resets)
        assignment = self.auto_assign(freed)

        entry = self.recorder.record(
            HistoryAction.MOVED_TO_DOOR,
            trailer=trailer,
            door_number=door.number,
            door_id=door.id,
            status=trailer.status,
            customer=trailer.customer,
            load_number=trailer.load_number,
            previous_location=previous_location,
            from_door_num=from_door_num,
            cancelled_queue=cancelled_queue,
            **self._cascade_details(assignment),
        )
        return TransitionResult(
            trailer=trailer,
            door=door,
            entry=entry,
            auto_assigned=assignment,
            evicted=evicted,
            was_queued=was_queued,
        )

    def move_to_yard(
        self,
        trailer_id: str,
        from_location: Optional[TrailerLocation] = None,
    ) -> TransitionResult:
        """Send a trailer to the unassigned yard, refilling any door it left."""
        trailer = self.get_trailer(trailer_id)
        if from_location is not None and trailer.location != from_location:
            raise ConflictError(
                f"Trailer is not in a {from_location.value}",
                details={"trailer_id": trailer_id, "current_location": trailer.location.value},
            )
        validate_transition(trailer, TrailerLocation.YARD)

        previous_location = location_label(trailer, self.state)
        from_door = trailer.door_number if trailer.location == TrailerLocation.DOOR else None
        from_slot = trailer.yard_slot_number if trailer.location == TrailerLocation.YARD_SLOT else None

        freed = self._relocate(trailer, UnassignedYard())
        trailer.reset_dwell(self.now, self.max_dwell_resets)
        assignment = self.auto_assign(freed)

        entry = self.recorder.record(
            HistoryAction.MOVED_TO_YARD,
            trailer=trailer,
            to_location="Yard",
            previous_location=previous_location,
            from_door=from_door,
            door_number=from_door,
            from_slot=from_slot,
            **self._cascade_details(assignment),
        )
        return TransitionResult(trailer=trailer, door=freed, entry=entry, auto_assigned=assignment)

    def move_to_yard_slot(self, trailer_id: str, slot_ref: Any) -> TransitionResult:
        """Park a trailer in a numbered yard slot."""
        trailer = self.get_trailer(trailer_id)
        slot = self.get_slot(slot_ref)
        validate_transition(trailer, TrailerLocation.YARD_SLOT)
        if trailer.yard_slot_id == slot.id and trailer.location == TrailerLocation.YARD_SLOT:
            raise ConflictError("Trailer is already in this yard slot", details={"slot_id": slot.id})

        previous_location = location_label(trailer, self.state)
        from_door = trailer.door_number if trailer.location == TrailerLocation.DOOR else None

        evicted = []
        if slot.trailer_id and slot.trailer_id != trailer.id:
            occupant = self._evict(
                slot.trailer_id,
                reason="Replaced by new trailer",
                from_slot=slot.number,
            )
            if occupant is not None:
                evicted.append(occupant)

        freed = self._relocate(trailer, InYardSlot(slot.id, slot.number))
        trailer.reset_dwell(self.now, self.max_dwell_resets)
        assignment = self.auto_assign(freed)

        entry = self.recorder.record(
            HistoryAction.MOVED_TO_YARD_SLOT,
            trailer=trailer,
            to_location=f"Yard Slot {slot.number}",
            slot_id=slot.id,
            previous_location=previous_location,
            from_door=from_door,
            **self._cascade_details(assignment),
        )
        return TransitionResult(
            trailer=trailer,
            slot=slot,
            door=freed,
            entry=entry,
            auto_assigned=assignment,
            evicted=evicted,
        )

    def ship(self, trailer_id: str) -> TransitionResult:
        """Archive a trailer as shipped. Terminal."""
        trailer = self.get_trailer(trailer_id)
        validate_transition(trailer, TrailerLocation.SHIPPED)

        previous_location = location_label(trailer, self.state)
        door_number = trailer.door_number if trailer.location == TrailerLocation.DOOR else None

        freed = self._relocate(trailer, Shipped(self.now, previous_location))
        assignment = self.auto_assign(freed)

        entry = self.recorder.record(
            HistoryAction.TRAILER_SHIPPED,
            trailer=trailer,
            load_number=trailer.load_number,
            customer=trailer.customer,
            door_number=door_number,
            previous_location=previous_location,
            to_location="Shipped",
            **self._cascade_details(assignment),
        )
        return TransitionResult(trailer=trailer, door=freed, entry=entry, auto_assigned=assignment)

    def delete_trailer(self, trailer_id: str) -> TransitionResult:
        """Remove an active trailer for good."""
        trailer = self.state.find_trailer(trailer_id)
        if trailer is None or trailer.location == TrailerLocation.SHIPPED:
            raise NotFoundError("Trailer not found", details={"trailer_id": trailer_id})

        previous_location = location_label(trailer, self.state)
        door_number = trailer.door_number if trailer.location == TrailerLocation.DOOR else None

        freed = self._detach(trailer)
        assignment = self.auto_assign(freed)

        entry = self.recorder.record(
            HistoryAction.TRAILER_DELETED,
            trailer=trailer,
            door_number=door_number,
            previous_location=previous_location,
            **self._cascade_details(assignment),
        )
        return TransitionResult(trailer=trailer, door=freed, entry=entry, auto_assigned=assignment)

    # =========================================================================
    # STAGING & QUEUES
    # =========================================================================

    def enqueue(self, trailer_id: str, door_ref: Any) -> TransitionResult:
        """Put a staged or appointment trailer in line for a specific door."""
        trailer = self.get_trailer(trailer_id)
        if trailer.location not in (TrailerLocation.STAGING, TrailerLocation.APPOINTMENT_QUEUE):
            raise ConflictError(
                "Only trailers in staging or the appointment queue can be queued",
                details={"trailer_id": trailer_id, "current_location": trailer.location.value},
            )
        door = self.get_usable_door(door_ref)
        previous_location = location_label(trailer, self.state)

        self._relocate(trailer, FcfsQueue(door.id, door.number, self.now))

        entry = self.recorder.record(
            HistoryAction.TRAILER_QUEUED,
            trailer=trailer,
            target_door=door.number,
            target_door_id=door.id,
            previous_location=previous_location,
        )
        return TransitionResult(trailer=trailer, door=door, entry=entry)

    def reassign(self, trailer_id: str, door_ref: Any) -> TransitionResult:
        """Point a queued trailer at another door; it goes to the back of that line."""
        trailer = self.get_trailer(trailer_id)
        if trailer.location != TrailerLocation.QUEUED:
            raise ConflictError("Trailer is not in the queue", details={"trailer_id": trailer_id})
        door = self.get_usable_door(door_ref)
        old_door = trailer.target_door_number

        self._relocate(trailer, FcfsQueue(door.id, door.number, self.now))

        entry = self.recorder.record(
            HistoryAction.TRAILER_REASSIGNED,
            trailer=trailer,
            from_door=old_door,
            to_door=door.number,
            target_door_id=door.id,
        )
        return TransitionResult(trailer=trailer, door=door, entry=entry)

    def cancel_queue(self, trailer_id: str) -> TransitionResult:
        """Take a trailer out of the FCFS queue into the unassigned yard."""
        return self._cancel(trailer_id, TrailerLocation.QUEUED, HistoryAction.TRAILER_UNQUEUED)

    def cancel_appointment(self, trailer_id: str) -> TransitionResult:
        """Take a trailer out of the appointment queue into the unassigned yard."""
        return self._cancel(
            trailer_id,
            TrailerLocation.APPOINTMENT_QUEUE,
            HistoryAction.TRAILER_UNQUEUED_APPT,
        )

    def _cancel(
        self,
        trailer_id: str,
        expected: TrailerLocation,
        action: HistoryAction,
    ) -> TransitionResult:
        trailer = self.get_trailer(trailer_id)
        if trailer.location != expected:
            raise ConflictError(
                f"Trailer is not in the {expected.value.replace('-', ' ')}",
                details={"trailer_id": trailer_id, "current_location": trailer.location.value},
            )
        previous_location = location_label(trailer, self.state)
        self._relocate(trailer, UnassignedYard())
        entry = self.recorder.record(
            action,
            trailer=trailer,
            previous_location=previous_location,
            to_location=UNASSIGNED_YARD_LABEL,
        )
        return TransitionResult(trailer=trailer, entry=entry, was_queued=True)

    def send_to_appointment_queue(self, trailer_id: str) -> TransitionResult:
        """Move the staged trailer to the end of the appointment queue."""
        trailer = self.get_trailer(trailer_id)
        if trailer.location != TrailerLocation.STAGING:
            raise ConflictError("Trailer is not in staging", details={"trailer_id": trailer_id})

        self._relocate(trailer, AppointmentQueue(self.now))
        entry = self.recorder.record(
            HistoryAction.TRAILER_QUEUED_APPT,
            trailer=trailer,
            location="Appointment Queue",
            previous_location="Staging",
        )
        return TransitionResult(trailer=trailer, entry=entry)

    def check_in(self, trailer_id: str) -> TransitionResult:
        """Bring a trailer into the single staging spot."""
        trailer = self.get_trailer(trailer_id)
        validate_transition(trailer, TrailerLocation.STAGING)
        if self.state.staging is not None:
            raise ConflictError(
                "Staging slot is already occupied",
                details={"staging_trailer_id": self.state.staging.id},
            )
        previous_location = location_label(trailer, self.state)

        self._relocate(trailer, Staging())
        entry = self.recorder.record(
            HistoryAction.TRAILER_CHECKED_IN,
            trailer=trailer,
            location="Staging",
            previous_location=previous_location,
        )
        return TransitionResult(trailer=trailer, entry=entry)

    def reorder_appointment_queue(self, trailer_ids: List[str]) -> List[Trailer]:
        """Rebuild the appointment queue order; unknown ids are ignored."""
        remaining = {t.id: t for t in self.state.appointment_queue}
        ordered = []
        for trailer_id in trailer_ids:
            trailer = remaining.pop(trailer_id, None)
            if trailer is not None:
                ordered.append(trailer)
        ordered.extend(t for t in self.state.appointment_queue if t.id in remaining)
        self.state.appointment_queue = ordered
        return ordered

    def assign_next(self, door_ref: Any) -> TransitionResult:
        """Explicitly pull the oldest trailer queued for an empty door."""
        door = self.get_door(door_ref)
        if door.trailer_id:
            raise ConflictError("Door is still occupied", details={"door_id": door.id})
        if not door.accepts_trailers:
            raise InvalidArgumentError("Door cannot hold trailers", details={"door_id": door.id})

        trailer = next_in_queue(self.state, door.id)
        if trailer is None:
            return TransitionResult(door=door)

        self._relocate(trailer, Docked(door.id, door.number))
        trailer.reset_dwell(self.now, self.max_dwell_resets)
        entry = self.recorder.record(
            HistoryAction.TRAILER_ASSIGNED_FROM_QUEUE,
            trailer=trailer,
            to_door=door.number,
            door_id=door.id,
        )
        return TransitionResult(trailer=trailer, door=door, entry=entry, was_queued=True)

    # =========================================================================
    # TRAILER RECORDS
    # =========================================================================

    def _ensure_unique_number(self, number: Optional[str], exclude_id: Optional[str] = None) -> None:
        if not number:
            return
        for other in self.state.active_trailers():
            if other.number == number and other.id != exclude_id:
                raise ConflictError(
                    "Trailer number already exists",
                    details={"number": number, "trailer_id": other.id},
                )

    def _carrier_for(self, name: str) -> Carrier:
        """Find a carrier by name, creating it on first use."""
        carrier = self.state.find_carrier_by_name(name)
        if carrier is None:
            carrier = Carrier(id=new_id(), name=name, created_at=self.now)
            self.state.carriers.append(carrier)
        return carrier

    def create_trailer(self, fields: Dict[str, Any], staged: bool = False) -> TransitionResult:
        """
        Create a trailer in the unassigned yard, or in staging when `staged`.

        Args:
            fields: Sanitized trailer attributes (snake_case), carrier required
            staged: Create directly into the staging spot
        """
        if not fields.get("carrier"):
            raise InvalidArgumentError("Carrier is required")
        if staged and self.state.staging is not None:
            raise ConflictError(
                "Staging slot is already occupied",
                details={"staging_trailer_id": self.state.staging.id},
            )
        self._ensure_unique_number(fields.get("number"))

        carrier = self._carrier_for(fields["carrier"])
        trailer = Trailer(
            id=new_id(),
            created_at=self.now,
            **{k: v for k, v in fields.items() if k not in ("id", "created_at", "location")},
        )
        if not trailer.carrier_id:
            trailer.carrier_id = carrier.id

        self._attach(trailer, Staging() if staged else UnassignedYard())
        entry = self.recorder.record(
            HistoryAction.TRAILER_CREATED,
            trailer=trailer,
            status=trailer.status,
            location=location_label(trailer),
            customer=trailer.customer,
            load_number=trailer.load_number,
        )
        return TransitionResult(trailer=trailer, carrier=carrier, entry=entry)

    def update_trailer(self, trailer_id: str, updates: Dict[str, Any]) -> TransitionResult:
        """
        Apply field updates with change tracking.

        A status-only change records TRAILER_LOADED / TRAILER_EMPTY; anything
        else records TRAILER_UPDATED. A new created_at restarts the dwell clock.
        """
        trailer = self.get_active_trailer(trailer_id)
        location = location_label(trailer, self.state)
        updates = {
            k: v for k, v in updates.items()
            if v is not None or k not in NON_NULLABLE_FIELDS
        }

        if "number" in updates and updates["number"] != trailer.number:
            self._ensure_unique_number(updates["number"], exclude_id=trailer.id)
        if "carrier" in updates and not updates["carrier"]:
            raise InvalidArgumentError("Carrier cannot be empty")

        changes: List[FieldChange] = []
        for name in TRACKED_FIELDS:
            if name not in updates:
                continue
            new_value = updates[name]
            if name == "status":
                new_value = TrailerStatus(new_value)
            old_value = getattr(trailer, name)
            if new_value == old_value:
                continue
            setattr(trailer, name, new_value)
            changes.append(FieldChange(
                field=_camel(name),
                from_=_plain(old_value),
                to=_plain(getattr(trailer, name)),
            ))

        if updates.get("carrier_id"):
            trailer.carrier_id = updates["carrier_id"]
        if updates.get("carrier"):
            self._carrier_for(trailer.carrier)

        created_at = updates.get("created_at")
        if created_at is not None and ensure_utc(created_at) != trailer.created_at:
            trailer.dwell_resets.append(self.now)
            trailer.dwell_resets = trailer.dwell_resets[-self.max_dwell_resets:]
            trailer.created_at = ensure_utc(created_at)

        door = None
        if trailer.location == TrailerLocation.DOOR:
            door = self.state.find_door(trailer.door_id)
            if door is not None:
                door.status = trailer.status.value

        if len(changes) == 1 and changes[0].field == "status":
            action = (
                HistoryAction.TRAILER_LOADED
                if trailer.status == TrailerStatus.LOADED
                else HistoryAction.TRAILER_EMPTY
            )
        else:
            action = HistoryAction.TRAILER_UPDATED

        entry = self.recorder.record(
            action,
            trailer=trailer,
            location=location,
            door_number=trailer.door_number,
            changes=[c.to_document() for c in changes] or None,
            updates=None if changes else {_camel(k): _plain(v) for k, v in updates.items()},
        )
        return TransitionResult(trailer=trailer, door=door, entry=entry)

    def reset_dwell(self, trailer_id: str) -> TransitionResult:
        """Manually restart a trailer's dwell clock."""
        trailer = self.get_active_trailer(trailer_id)
        trailer.reset_dwell(self.now, self.max_dwell_resets)
        entry = self.recorder.record(
            HistoryAction.DWELL_RESET,
            trailer=trailer,
            door_number=trailer.door_number,
            location=location_label(trailer, self.state),
        )
        return TransitionResult(trailer=trailer, entry=entry)

    def delete_shipped(self, trailer_id: str) -> TransitionResult:
        """Drop a shipped record."""
        trailer = next((t for t in self.state.shipped_trailers if t.id == trailer_id), None)
        if trailer is None:
            raise NotFoundError("Shipped trailer not found", details={"trailer_id": trailer_id})
        self.state.shipped_trailers = [t for t in self.state.shipped_trailers if t.id != trailer_id]
        entry = self.recorder.record(
            HistoryAction.SHIPPED_DELETED,
            trailer=trailer,
            ship_date=_plain(trailer.shipped_at),
        )
        return TransitionResult(trailer=trailer, entry=entry)

    # =========================================================================
    # CARRIERS
    # =========================================================================

    def create_carrier(self, name: str, mc_number: str = "", favorite: bool = False) -> TransitionResult:
        if not name:
            raise InvalidArgumentError("Carrier name is required")
        if self.state.find_carrier_by_name(name) is not None:
            raise ConflictError("Carrier already exists", details={"name": name})
        carrier = Carrier(
            id=new_id(),
            name=name,
            mc_number=mc_number or "",
            favorite=favorite,
            created_at=self.now,
        )
        self.state.carriers.append(carrier)
        entry = self.recorder.record(
            HistoryAction.CARRIER_CREATED,
            carrier=carrier.name,
            carrier_id=carrier.id,
            carrier_name=carrier.name,
        )
        return TransitionResult(carrier=carrier, entry=entry)

    def set_carrier_favorite(self, carrier_id: str, favorite: bool) -> Carrier:
        carrier = self.get_carrier(carrier_id)
        carrier.favorite = favorite
        return carrier

    def record_carrier_use(self, carrier_id: str) -> Carrier:
        carrier = self.get_carrier(carrier_id)
        carrier.usage_count += 1
        return carrier

    def delete_carrier(self, carrier_id: str) -> TransitionResult:
        carrier = self.get_carrier(carrier_id)
        lowered = carrier.name.lower()
        in_use = [t.id for t in self.state.active_trailers() if t.carrier.lower() == lowered]
        if in_use:
            raise ConflictError(
                "Carrier is assigned to trailers",
                details={"carrier_id": carrier_id, "trailer_ids": in_use},
            )
        self.state.carriers = [c for c in self.state.carriers if c.id != carrier_id]
        entry = self.recorder.record(
            HistoryAction.CARRIER_DELETED,
            carrier=carrier.name,
            carrier_id=carrier.id,
            carrier_name=carrier.name,
        )
        return TransitionResult(carrier=carrier, entry=entry)

    # =========================================================================
    # DOORS
    # =========================================================================

    def create_door(
        self,
        number: Optional[int] = None,
        door_type: DoorType = DoorType.NORMAL,
        label_text: Optional[str] = None,
        in_service: bool = True,
    ) -> TransitionResult:
        door = Door(
            id=f"door-{new_id()}",
            number=number,
            order=max((d.order for d in self.state.doors), default=0) + 1,
            label_text=label_text,
            in_service=in_service,
            type=door_type,
        )
        self.state.doors.append(door)
        entry = self.recorder.record(
            HistoryAction.DOOR_CREATED,
            door_id=door.id,
            door_number=door.number,
            door_label=door.label_text,
            type=door.type,
        )
        return TransitionResult(door=door, entry=entry)

    def update_door(self, door_id: str, updates: Dict[str, Any]) -> TransitionResult:
        """Change number, label, type, service state or order of a door."""
        door = self.get_door(door_id)

        becomes_unusable = (
            updates.get("in_service") is False
            or updates.get("type") == DoorType.BLANK
        )
        if door.trailer_id and becomes_unusable:
            raise ConflictError(
                "Door is occupied; move its trailer first",
                details={"door_id": door.id, "trailer_id": door.trailer_id},
            )

        if "number" in updates:
            door.number = updates["number"]
            occupant = self.state.find_trailer(door.trailer_id) if door.trailer_id else None
            if occupant is not None:
                occupant.door_number = door.number
            for queued in self.state.queued_trailers:
                if queued.target_door_id == door.id:
                    queued.target_door_number = door.number
        if updates.get("in_service") is not None:
            door.in_service = updates["in_service"]
        if updates.get("type") is not None:
            door.type = DoorType(updates["type"])
        if "label_text" in updates:
            door.label_text = updates["label_text"] or None
        if updates.get("order") is not None:
            door.order = updates["order"]

        entry = self.recorder.record(
            HistoryAction.DOOR_UPDATED,
            door_id=door.id,
            door_number=door.number,
            label_text=door.label_text,
            in_service=door.in_service,
            type=door.type,
        )
        return TransitionResult(door=door, entry=entry)

    def delete_door(self, door_id: str) -> TransitionResult:
        """Remove a door; its occupant and anyone queued for it go to the yard."""
        door = self.get_door(door_id)

        evicted = []
        if door.trailer_id:
            occupant = self._evict(
                door.trailer_id,
                reason="Door deleted",
                from_door=door.number,
                door_number=door.number,
            )
            if occupant is not None:
                evicted.append(occupant)

        requeued = [t for t in self.state.queued_trailers if t.target_door_id == door.id]
        for trailer in requeued:
            self._relocate(trailer, UnassignedYard())

        self.state.doors = [d for d in self.state.doors if d.id != door.id]
        entry = self.recorder.record(
            HistoryAction.DOOR_DELETED,
            door_id=door.id,
            door_number=door.number,
            door_label=door.label_text,
            cancelled_queue_trailer_ids=[t.id for t in requeued] or None,
        )
        return TransitionResult(door=door, entry=entry, evicted=evicted + requeued)

    def reorder_doors(self, door_ids: List[str]) -> List[Door]:
        """Set door order from an id list; unlisted doors follow in their current order."""
        by_id = {d.id: d for d in self.state.doors}
        listed = []
        for door_id in door_ids:
            door = by_id.pop(door_id, None)
            if door is not None:
                listed.append(door)
        ordered = listed + [d for d in self.state.doors if d.id in by_id]
        for index, door in enumerate(ordered):
            door.order = index
        self.state.doors = ordered
        return ordered

    # =========================================================================
    # YARD SLOTS
    # =========================================================================

    def _ensure_unique_slot_number(self, number: int, exclude_id: Optional[str] = None) -> None:
        for slot in self.state.yard_slots:
            if slot.number == number and slot.id != exclude_id:
                raise ConflictError(
                    "Yard slot number already exists",
                    details={"number": number, "slot_id": slot.id},
                )

    def create_yard_slot(self, number: Optional[int] = None) -> TransitionResult:
        if number is None:
            number = max((s.number for s in self.state.yard_slots), default=0) + 1
        self._ensure_unique_slot_number(number)
        slot = YardSlot(
            id=f"yard-{new_id()}",
            number=number,
            order=len(self.state.yard_slots),
        )
        self.state.yard_slots.append(slot)
        entry = self.recorder.record(
            HistoryAction.YARD_SLOT_CREATED,
            slot_id=slot.id,
            number=slot.number,
        )
        return TransitionResult(slot=slot, entry=entry)

    def update_yard_slot(self, slot_id: str, number: int) -> TransitionResult:
        slot = self.get_slot(slot_id)
        self._ensure_unique_slot_number(number, exclude_id=slot.id)
        old_number = slot.number
        slot.number = number
        if slot.trailer_id:
            occupant = self.state.find_trailer(slot.trailer_id)
            if occupant is not None:
                occupant.yard_slot_number = number
        entry = self.recorder.record(
            HistoryAction.YARD_SLOT_UPDATED,
            slot_id=slot.id,
            old_number=old_number,
            new_number=number,
        )
        return TransitionResult(slot=slot, entry=entry)

    def delete_yard_slot(self, slot_id: str) -> TransitionResult:
        slot = self.get_slot(slot_id)
        evicted = []
        if slot.trailer_id:
            occupant = self._evict(slot.trailer_id, reason="Yard slot deleted", from_slot=slot.number)
            if occupant is not None:
                evicted.append(occupant)
        self.state.yard_slots = [s for s in self.state.yard_slots if s.id != slot.id]
        entry = self.recorder.record(
            HistoryAction.YARD_SLOT_DELETED,
            slot_id=slot.id,
            number=slot.number,
        )
        return TransitionResult(slot=slot, entry=entry, evicted=evicted)

    def reorder_yard_slots(self, slot_ids: List[str]) -> List[YardSlot]:
        by_id = {s.id: s for s in self.state.yard_slots}
        listed = []
        for slot_id in slot_ids:
            slot = by_id.pop(slot_id, None)
            if slot is not None:
                listed.append(slot)
        ordered = listed + [s for s in self.state.yard_slots if s.id in by_id]
        for index, slot in enumerate(ordered):
            slot.order = index
        self.state.yard_slots = ordered
        return ordered

    # =========================================================================
    # FACILITY SETUP
    # =========================================================================

    def setup_facility(
        self,
        num_doors: int = 57,
        num_yard_slots: int = 30,
        num_dumpsters: int = 0,
        num_ramps: int = 0,
        door_start: int = 1,
        yard_start: int = 1,
    ) -> TransitionResult:
        """Generate the first-run door and yard layout."""
        if self.state.is_configured:
            raise ConflictError("Setup already completed")

        params = {
            "num_doors": num_doors,
            "num_yard_slots": num_yard_slots,
            "num_dumpsters": num_dumpsters,
            "num_ramps": num_ramps,
            "door_start": door_start,
            "yard_start": yard_start,
        }
        for name, value in params.items():
            low, high = SETUP_LIMITS[name]
            if not isinstance(value, int) or isinstance(value, bool) or not low <= value <= high:
                raise InvalidArgumentError(
                    f"Invalid {name.replace('_', ' ')} ({low}-{high})",
                    details={"field": name, "value": value},
                )

        doors: List[Door] = []
        for i in range(num_doors):
            number = door_start + i
            doors.append(Door(id=f"door-{number}", number=number, order=len(doors)))
        for i in range(num_dumpsters):
            doors.append(Door(
                id=f"dumpster-{new_id()}",
                order=len(doors),
                label_text=f"Dumpster {i + 1}",
                type=DoorType.BLANK,
            ))
        for i in range(num_ramps):
            doors.append(Door(
                id=f"ramp-{new_id()}",
                order=len(doors),
                label_text=f"Ramp {i + 1}",
                type=DoorType.BLANK,
            ))

        slots = [
            YardSlot(id=f"yard-{yard_start + i}", number=yard_start + i, order=i)
            for i in range(num_yard_slots)
        ]

        self.state.doors = doors
        self.state.yard_slots = slots
        entry = self.recorder.record(HistoryAction.FACILITY_SETUP, **params)
        return TransitionResult(entry=entry)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _plain(value: Any) -> Any:
    """JSON-safe rendition of a trailer attribute for history."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value
