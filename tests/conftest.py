"""
Shared fixtures: memory stores, a controllable clock and an API client.
"""
import os

# Must be set before dockboard.config is imported
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["FACILITY_TIMEZONE"] = "UTC"

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from dockboard.models.facility import FacilityState
from dockboard.services.dock_board_service import DockBoardService
from dockboard.services.history_service import HistoryRecorder
from dockboard.services.location_state_machine import FacilityStateMachine
from dockboard.stores.factory import Stores, set_stores
from dockboard.stores.memory import InMemoryAnalyticsStore, InMemoryHistoryStore, InMemoryStateStore


START = datetime(2026, 10, 17, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stores():
    return Stores(
        state=InMemoryStateStore(),
        history=InMemoryHistoryStore(limit=1000),
        analytics=InMemoryAnalyticsStore(),
    )


@pytest.fixture
def service(stores, clock):
    return DockBoardService(stores, clock=clock)


@pytest.fixture
async def facility(service):
    """A service whose facility has 10 doors and 15 yard slots."""
    await service.setup_facility(num_doors=10, num_yard_slots=15)
    return service


@pytest.fixture
def machine():
    """A state machine over a configured in-memory facility."""
    state = FacilityState()
    setup = FacilityStateMachine(state, HistoryRecorder(clock=START), START)
    setup.setup_facility(num_doors=10, num_yard_slots=15)
    return FacilityStateMachine(state, HistoryRecorder(clock=START), START)


@pytest.fixture
def client(stores):
    from dockboard.main import app

    set_stores(stores)
    with TestClient(app) as test_client:
        yield test_client
    set_stores(None)


def assert_consistent(state: FacilityState) -> None:
    """Every trailer sits in exactly one container and every mirror agrees."""
    seen = {}
    containers = list(state.containers())
    if state.staging is not None:
        containers.append(("staging", [state.staging]))
    for name, trailers in containers:
        for trailer in trailers:
            assert trailer.id not in seen, f"{trailer.id} in {seen.get(trailer.id)} and {name}"
            seen[trailer.id] = name

    for door in state.doors:
        if door.trailer_id:
            trailer = state.find_trailer(door.trailer_id)
            assert trailer is not None
            assert trailer.door_id == door.id
            assert door.accepts_trailers
    for slot in state.yard_slots:
        if slot.trailer_id:
            trailer = state.find_trailer(slot.trailer_id)
            assert trailer is not None
            assert trailer.yard_slot_id == slot.id

    for trailer in state.trailers:
        if trailer.door_id:
            assert state.find_door(trailer.door_id).trailer_id == trailer.id
        if trailer.yard_slot_id:
            assert state.find_slot(trailer.yard_slot_id).trailer_id == trailer.id
