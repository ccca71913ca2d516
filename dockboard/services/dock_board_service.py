"""
Dock Board Service.

Persistence-aware entry point for every facility operation:
- Facility state and first-run setup
- Trailer moves between doors, yard slots and the unassigned yard
- Staging, FCFS queue and appointment queue
- Trailer, carrier, door and yard slot records
- History queries and door analytics

Each write loads the state, applies one FacilityStateMachine transition,
saves the state and then appends the history it produced. If the history
append fails the previous state is written back.
"""
import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar

from dockboard.config import settings
from dockboard.core.exceptions import DockBoardError, InternalError
from dockboard.models.base import utc_now
from dockboard.models.facility import DoorType, FacilityState, TrailerLocation
from dockboard.models.history import HistoryAction, HistoryPage, HistoryQuery
from dockboard.services.door_analytics_service import build_heatmap, build_position_patterns
from dockboard.services.dwell_service import DwellService
from dockboard.services.history_service import HistoryRecorder
from dockboard.services.location_state_machine import FacilityStateMachine, TransitionResult
from dockboard.stores.factory import Stores

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DockBoardService:
    """Service for dock board operations."""

    def __init__(self, stores: Stores, clock: Callable[[], datetime] = utc_now):
        self.stores = stores
        self.clock = clock
        self.dwell = DwellService(stores)

    async def _mutate(self, name: str, operation: Callable[[FacilityStateMachine], T]) -> T:
        """
        Run one transition under the write lock and persist it.

        Args:
            name: Operation name for logging
            operation: Callable applied to a fresh FacilityStateMachine

        Returns:
            Whatever the operation returned
        """
        async with self.stores.lock:
            state = await self.stores.state.load()
            snapshot = state.model_copy(deep=True)
            now = self.clock()
            recorder = HistoryRecorder(clock=now)
            machine = FacilityStateMachine(state, recorder, now, settings.MAX_DWELL_RESETS)

            result = operation(machine)

            await self.stores.state.save(state)
            try:
                await self.stores.history.append_many(recorder.entries)
            except Exception as e:
                logger.error(f"History append failed after {name}, restoring previous state: {e}")
                await self.stores.state.save(snapshot)
                if isinstance(e, DockBoardError):
                    raise
                raise InternalError("Could not record history", details={"operation": name}) from e

            logger.info(f"{name} committed ({len(recorder.entries)} history entries)")
            return result

    # =========================================================================
    # STATE
    # =========================================================================

    async def get_state(self) -> FacilityState:
        return await self.stores.state.load()

    async def setup_status(self) -> Dict[str, Any]:
        """Whether first-run setup is still needed, with the current counts."""
        state = await self.stores.state.load()
        return {
            "needsSetup": not state.is_configured,
            "doorCount": len([d for d in state.doors if d.type == DoorType.NORMAL]),
            "yardSlotCount": len(state.yard_slots),
            "defaults": {
                "numDoors": settings.DEFAULT_DOOR_COUNT,
                "numYardSlots": settings.DEFAULT_YARD_SLOT_COUNT,
            },
        }

    async def setup_facility(self, **params: int) -> TransitionResult:
        """Generate doors and yard slots on an unconfigured facility."""
        params.setdefault("num_doors", settings.DEFAULT_DOOR_COUNT)
        params.setdefault("num_yard_slots", settings.DEFAULT_YARD_SLOT_COUNT)
        return await self._mutate("setup_facility", lambda m: m.setup_facility(**params))

    # =========================================================================
    # MOVES
    # =========================================================================

    async def move_to_door(self, trailer_id: str, door_ref: Any) -> TransitionResult:
        return await self._mutate("move_to_door", lambda m: m.move_to_door(trailer_id, door_ref))

    async def move_to_yard(
        self,
        trailer_id: str,
        from_location: Optional[TrailerLocation] = None,
    ) -> TransitionResult:
        return await self._mutate("move_to_yard", lambda m: m.move_to_yard(trailer_id, from_location))

    async def move_to_yard_slot(self, trailer_id: str, slot_ref: Any) -> TransitionResult:
        return await self._mutate("move_to_yard_slot", lambda m: m.move_to_yard_slot(trailer_id, slot_ref))

    async def ship(self, trailer_id: str) -> TransitionResult:
        return await self._mutate("ship", lambda m: m.ship(trailer_id))

    # =========================================================================
    # STAGING & QUEUES
    # =========================================================================

    async def get_staging(self):
        return (await self.stores.state.load()).staging

    async def get_queue(self) -> List[Any]:
        return (await self.stores.state.load()).queued_trailers

    async def get_appointment_queue(self) -> List[Any]:
        return (await self.stores.state.load()).appointment_queue

    async def enqueue(self, trailer_id: str, door_ref: Any) -> TransitionResult:
        return await self._mutate("enqueue", lambda m: m.enqueue(trailer_id, door_ref))

    async def reassign(self, trailer_id: str, door_ref: Any) -> TransitionResult:
        return await self._mutate("reassign", lambda m: m.reassign(trailer_id, door_ref))

    async def cancel_queue(self, trailer_id: str) -> TransitionResult:
        return await self._mutate("cancel_queue", lambda m: m.cancel_queue(trailer_id))

    async def send_to_appointment_queue(self, trailer_id: str) -> TransitionResult:
        return await self._mutate(
            "send_to_appointment_queue",
            lambda m: m.send_to_appointment_queue(trailer_id),
        )

    async def cancel_appointment(self, trailer_id: str) -> TransitionResult:
        return await self._mutate("cancel_appointment", lambda m: m.cancel_appointment(trailer_id))

    async def check_in(self, trailer_id: str) -> TransitionResult:
        return await self._mutate("check_in", lambda m: m.check_in(trailer_id))

    async def reorder_appointment_queue(self, trailer_ids: List[str]):
        return await self._mutate(
            "reorder_appointment_queue",
            lambda m: m.reorder_appointment_queue(trailer_ids),
        )

    async def assign_next(self, door_ref: Any) -> TransitionResult:
        return await self._mutate("assign_next", lambda m: m.assign_next(door_ref))

    # =========================================================================
    # TRAILERS
    # =========================================================================

    async def create_trailer(self, fields: Dict[str, Any], staged: bool = False) -> TransitionResult:
        """Create a trailer in the unassigned yard (or staging)."""
        return await self._mutate("create_trailer", lambda m: m.create_trailer(fields, staged=staged))

    async def update_trailer(self, trailer_id: str, updates: Dict[str, Any]) -> TransitionResult:
        return await self._mutate("update_trailer", lambda m: m.update_trailer(trailer_id, updates))

    async def delete_trailer(self, trailer_id: str) -> TransitionResult:
        return await self._mutate("delete_trailer", lambda m: m.delete_trailer(trailer_id))

    async def reset_dwell(self, trailer_id: str) -> TransitionResult:
        return await self._mutate("reset_dwell", lambda m: m.reset_dwell(trailer_id))

    async def get_shipped(self) -> List[Any]:
        return (await self.stores.state.load()).shipped_trailers

    async def delete_shipped(self, trailer_id: str) -> TransitionResult:
        return await self._mutate("delete_shipped", lambda m: m.delete_shipped(trailer_id))

    # =========================================================================
    # CARRIERS
    # =========================================================================

    async def get_carriers(self) -> List[Any]:
        """Favorites first, then most used, then by name."""
        carriers = (await self.stores.state.load()).carriers
        return sorted(carriers, key=lambda c: (not c.favorite, -c.usage_count, c.name.lower()))

    async def create_carrier(self, name: str, mc_number: str = "", favorite: bool = False) -> TransitionResult:
        return await self._mutate(
            "create_carrier",
            lambda m: m.create_carrier(name, mc_number=mc_number, favorite=favorite),
        )

    async def set_carrier_favorite(self, carrier_id: str, favorite: bool):
        return await self._mutate(
            "set_carrier_favorite",
            lambda m: m.set_carrier_favorite(carrier_id, favorite),
        )

    async def record_carrier_use(self, carrier_id: str):
        return await self._mutate("record_carrier_use", lambda m: m.record_carrier_use(carrier_id))

    async def delete_carrier(self, carrier_id: str) -> TransitionResult:
        return await self._mutate("delete_carrier", lambda m: m.delete_carrier(carrier_id))

    # =========================================================================
    # DOORS
    # =========================================================================

    async def get_doors(self) -> List[Any]:
        doors = (await self.stores.state.load()).doors
        return sorted(doors, key=lambda d: d.order)

    async def create_door(
        self,
        number: Optional[int] = None,
        door_type: DoorType = DoorType.NORMAL,
        label_text: Optional[str] = None,
        in_service: bool = True,
    ) -> TransitionResult:
        return await self._mutate(
            "create_door",
            lambda m: m.create_door(number, door_type=door_type, label_text=label_text, in_service=in_service),
        )

    async def update_door(self, door_id: str, updates: Dict[str, Any]) -> TransitionResult:
        return await self._mutate("update_door", lambda m: m.update_door(door_id, updates))

    async def delete_door(self, door_id: str) -> TransitionResult:
        return await self._mutate("delete_door", lambda m: m.delete_door(door_id))

    async def reorder_doors(self, door_ids: List[str]):
        return await self._mutate("reorder_doors", lambda m: m.reorder_doors(door_ids))

    # =========================================================================
    # YARD SLOTS
    # =========================================================================

    async def get_yard_slots(self) -> List[Any]:
        slots = (await self.stores.state.load()).yard_slots
        return sorted(slots, key=lambda s: (s.order if s.order is not None else s.number, s.number))

    async def create_yard_slot(self, number: Optional[int] = None) -> TransitionResult:
        return await self._mutate("create_yard_slot", lambda m: m.create_yard_slot(number))

    async def update_yard_slot(self, slot_id: str, number: int) -> TransitionResult:
        return await self._mutate("update_yard_slot", lambda m: m.update_yard_slot(slot_id, number))

    async def delete_yard_slot(self, slot_id: str) -> TransitionResult:
        return await self._mutate("delete_yard_slot", lambda m: m.delete_yard_slot(slot_id))

    async def reorder_yard_slots(self, slot_ids: List[str]):
        return await self._mutate("reorder_yard_slots", lambda m: m.reorder_yard_slots(slot_ids))

    # =========================================================================
    # HISTORY
    # =========================================================================

    async def query_history(self, query: HistoryQuery) -> HistoryPage:
        return await self.stores.history.query(query)

    # =========================================================================
    # ANALYTICS
    # =========================================================================

    async def calculate_daily(self, day: Optional[str] = None):
        return await self.dwell.calculate_daily(day, now=self.clock())

    async def dwell_summary(self, period: str = "day") -> Dict[str, Any]:
        return await self.dwell.summary(period, now=self.clock())

    async def dwell_violations(self) -> Dict[str, Any]:
        return await self.dwell.violations(now=self.clock())

    async def current_violations(self) -> Dict[str, Any]:
        return await self.dwell.current_violations(now=self.clock())

    async def heatmap(self, carrier: Optional[str] = None, customer: Optional[str] = None) -> Dict[str, Any]:
        state = await self.stores.state.load()
        return build_heatmap(state, carrier=carrier, customer=customer, now=self.clock())

    async def position_patterns(
        self,
        carrier: Optional[str] = None,
        customer: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> Dict[str, Any]:
        entries = await self.stores.history.entries()
        return build_position_patterns(
            entries,
            carrier=carrier,
            customer=customer,
            date_from=date_from,
            date_to=date_to,
            now=self.clock(),
        )

    async def clear_analytics(self) -> None:
        """Drop every stored daily aggregate and note it in history."""
        async with self.stores.lock:
            await self.stores.analytics.clear()
            recorder = HistoryRecorder(clock=self.clock())
            recorder.record(HistoryAction.ANALYTICS_CLEARED)
            await self.stores.history.append_many(recorder.entries)
        logger.info("Analytics cleared")
