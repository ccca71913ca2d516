# Models module
from dockboard.models.analytics import AnalyticsDocument, DailyStat, Violator
from dockboard.models.facility import (
    Carrier,
    Door,
    DoorType,
    FacilityState,
    Trailer,
    TrailerLocation,
    TrailerStatus,
    YardSlot,
)
from dockboard.models.history import HistoryAction, HistoryEntry, HistoryPage, HistoryQuery

__all__ = [
    "AnalyticsDocument",
    "DailyStat",
    "Violator",
    "Carrier",
    "Door",
    "DoorType",
    "FacilityState",
    "Trailer",
    "TrailerLocation",
    "TrailerStatus",
    "YardSlot",
    "HistoryAction",
    "HistoryEntry",
    "HistoryPage",
    "HistoryQuery",
]
