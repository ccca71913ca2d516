"""
History log entries.

Entries are stored newest-first. The common fields are declared; anything an
action adds on top is kept as an extra field so older logs still load.
"""
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import ConfigDict, Field

from dockboard.models.base import DocumentModel, Timestamp, new_id, utc_now


class HistoryAction(str, Enum):
    """Actions recorded in the history log."""
    # Movement
    MOVED_TO_DOOR = "MOVED_TO_DOOR"
    MOVED_TO_YARD = "MOVED_TO_YARD"
    MOVED_TO_YARD_SLOT = "MOVED_TO_YARD_SLOT"

    # Trailer lifecycle
    TRAILER_CREATED = "TRAILER_CREATED"
    TRAILER_UPDATED = "TRAILER_UPDATED"
    TRAILER_LOADED = "TRAILER_LOADED"
    TRAILER_EMPTY = "TRAILER_EMPTY"
    TRAILER_DELETED = "TRAILER_DELETED"
    TRAILER_SHIPPED = "TRAILER_SHIPPED"
    SHIPPED_DELETED = "SHIPPED_DELETED"
    DWELL_RESET = "DWELL_RESET"

    # Queues and staging
    TRAILER_QUEUED = "TRAILER_QUEUED"
    TRAILER_UNQUEUED = "TRAILER_UNQUEUED"
    TRAILER_REASSIGNED = "TRAILER_REASSIGNED"
    TRAILER_ASSIGNED_FROM_QUEUE = "TRAILER_ASSIGNED_FROM_QUEUE"
    TRAILER_QUEUED_APPT = "TRAILER_QUEUED_APPT"
    TRAILER_UNQUEUED_APPT = "TRAILER_UNQUEUED_APPT"
    TRAILER_CHECKED_IN = "TRAILER_CHECKED_IN"

    # Facility
    CARRIER_CREATED = "CARRIER_CREATED"
    CARRIER_DELETED = "CARRIER_DELETED"
    DOOR_CREATED = "DOOR_CREATED"
    DOOR_UPDATED = "DOOR_UPDATED"
    DOOR_DELETED = "DOOR_DELETED"
    YARD_SLOT_CREATED = "YARD_SLOT_CREATED"
    YARD_SLOT_UPDATED = "YARD_SLOT_UPDATED"
    YARD_SLOT_DELETED = "YARD_SLOT_DELETED"
    FACILITY_SETUP = "FACILITY_SETUP"
    ANALYTICS_CLEARED = "ANALYTICS_CLEARED"


# Actions that mark a trailer arriving at / leaving a door, for dwell pairing
ARRIVAL_ACTIONS = frozenset({HistoryAction.MOVED_TO_DOOR.value})
DEPARTURE_ACTIONS = frozenset({
    HistoryAction.MOVED_TO_YARD.value,
    HistoryAction.TRAILER_DELETED.value,
})


class FieldChange(DocumentModel):
    """One changed attribute of a trailer update."""
    field: str
    from_: Any = Field(default=None, alias="from")
    to: Any = None


class HistoryEntry(DocumentModel):
    """A single event in the history log."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=new_id)
    timestamp: Timestamp = Field(default_factory=utc_now)
    action: str

    trailer_id: Optional[str] = None
    trailer_number: Optional[str] = None
    carrier: Optional[str] = None
    door_number: Optional[Union[int, str]] = None
    status: Optional[str] = None
    load_number: Optional[str] = None
    customer: Optional[str] = None
    previous_location: Optional[str] = None
    changes: Optional[List[FieldChange]] = None
    updates: Optional[Dict[str, Any]] = None

    # Cascade folded into the triggering entry
    auto_assigned_trailer_id: Optional[str] = None
    auto_assigned_to_door: Optional[Union[int, str]] = None
    auto_assigned_carrier: Optional[str] = None

    def to_document(self, **kwargs: Any) -> dict:
        kwargs.setdefault("exclude_none", True)
        return super().to_document(**kwargs)

    def search_text(self) -> str:
        """Lower-cased text the free-text history search matches against."""
        parts = [
            self.trailer_id,
            self.trailer_number,
            self.carrier,
            self.door_number,
            self.action,
            self.load_number,
            self.customer,
        ]
        extra = self.model_extra or {}
        for key in ("number", "fromDoor", "toDoor", "targetDoor", "carrierName"):
            parts.append(extra.get(key))
        if self.updates:
            parts.append(self.updates.get("number"))
            parts.append(self.updates.get("loadNumber"))
        for change in self.changes or []:
            parts.append(change.from_)
            parts.append(change.to)
        return " ".join(str(p) for p in parts if p not in (None, "")).lower()


class HistoryQuery(DocumentModel):
    """Filter for a page of history entries. Dates cover whole days."""
    search: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    trailer_id: Optional[str] = None
    limit: int = 50
    offset: int = 0


class HistoryPage(DocumentModel):
    entries: List[HistoryEntry]
    total: int
    offset: int
    limit: int
