# Services module
# DockBoardService depends on the stores and is imported from its own module
from dockboard.services.dwell_service import DwellService
from dockboard.services.history_service import HistoryRecorder
from dockboard.services.location_state_machine import FacilityStateMachine, TransitionResult

__all__ = [
    "DwellService",
    "HistoryRecorder",
    "FacilityStateMachine",
    "TransitionResult",
]
