"""
DockBoardService: persistence of transitions, rollback and serialisation.
"""
import asyncio

import pytest

from conftest import assert_consistent
from dockboard.core.exceptions import ConflictError, InternalError
from dockboard.models.history import HistoryAction
from dockboard.services.dock_board_service import DockBoardService
from dockboard.stores.factory import Stores
from dockboard.stores.memory import InMemoryAnalyticsStore, InMemoryHistoryStore, InMemoryStateStore


class FailingHistoryStore(InMemoryHistoryStore):
    """History store whose appends fail once armed."""

    def __init__(self):
        super().__init__(limit=1000)
        self.armed = False

    async def append_many(self, entries):
        if self.armed:
            raise RuntimeError("disk full")
        await super().append_many(entries)


async def test_transition_is_saved_with_its_history(facility):
    created = await facility.create_trailer({"carrier": "Swift", "number": "T1"})
    await facility.move_to_door(created.trailer.id, 5)

    state = await facility.get_state()
    assert state.find_door(5).trailer_id == created.trailer.id
    entries = await facility.stores.history.entries()
    assert [e.action for e in entries[:2]] == [
        HistoryAction.MOVED_TO_DOOR.value,
        HistoryAction.TRAILER_CREATED.value,
    ]


async def test_rejected_transition_changes_nothing(facility):
    created = await facility.create_trailer({"carrier": "Swift", "number": "T1"})
    before_state = await facility.get_state()
    before_history = await facility.stores.history.entries()

    with pytest.raises(ConflictError):
        await facility.create_trailer({"carrier": "Swift", "number": "T1"})

    assert await facility.get_state() == before_state
    assert len(await facility.stores.history.entries()) == len(before_history)
    assert created.trailer.id in {t.id for t in before_state.yard_trailers}


async def test_failed_history_append_restores_previous_state(clock):
    history = FailingHistoryStore()
    stores = Stores(state=InMemoryStateStore(), history=history, analytics=InMemoryAnalyticsStore())
    service = DockBoardService(stores, clock=clock)
    await service.setup_facility(num_doors=3, num_yard_slots=3)
    created = await service.create_trailer({"carrier": "Swift"})
    before = await service.get_state()

    history.armed = True
    with pytest.raises(InternalError):
        await service.move_to_door(created.trailer.id, 1)

    after = await service.get_state()
    assert after == before
    assert after.find_door(1).trailer_id is None


async def test_concurrent_moves_are_serialised(facility):
    first = (await facility.create_trailer({"carrier": "Swift", "number": "A"})).trailer
    second = (await facility.create_trailer({"carrier": "Swift", "number": "B"})).trailer

    await asyncio.gather(
        facility.move_to_door(first.id, 2),
        facility.move_to_door(second.id, 2),
    )

    state = await facility.get_state()
    assert_consistent(state)
    docked = state.find_door(2).trailer_id
    assert docked in {first.id, second.id}
    assert len(state.yard_trailers) == 1


async def test_setup_status(service):
    status = await service.setup_status()
    assert status["needsSetup"] is True

    await service.setup_facility(num_doors=4, num_yard_slots=2, num_dumpsters=1)
    status = await service.setup_status()
    assert status["needsSetup"] is False
    assert status["doorCount"] == 4
    assert status["yardSlotCount"] == 2


async def test_setup_defaults_from_settings(service):
    await service.setup_facility()
    state = await service.get_state()
    assert len(state.doors) == 57
    assert len(state.yard_slots) == 30


async def test_carriers_sorted_by_favorite_then_usage(facility):
    await facility.create_carrier("Alpha")
    beta = (await facility.create_carrier("Beta")).carrier
    gamma = (await facility.create_carrier("Gamma", favorite=True)).carrier
    await facility.record_carrier_use(beta.id)

    names = [c.name for c in await facility.get_carriers()]
    assert names == ["Gamma", "Beta", "Alpha"]
    assert gamma.favorite


async def test_clear_analytics_is_recorded(facility):
    await facility.calculate_daily()
    await facility.clear_analytics()

    assert await facility.stores.analytics.all_daily() == {}
    entries = await facility.stores.history.entries()
    assert entries[0].action == HistoryAction.ANALYTICS_CLEARED.value


async def test_heatmap_counts_docked_trailers(facility):
    created = await facility.create_trailer({"carrier": "Swift", "customer": "Globex", "status": "loaded"})
    await facility.move_to_door(created.trailer.id, 3)

    heatmap = await facility.heatmap()
    row = next(r for r in heatmap["doors"] if r["doorNumber"] == 3)
    assert row["trailerCount"] == 1
    assert row["loadedCount"] == 1
    assert row["carriers"] == {"Swift": 1}

    filtered = await facility.heatmap(carrier="Werner")
    assert all(r["trailerCount"] == 0 for r in filtered["doors"])


async def test_heatmap_keeps_doors_sharing_a_number_apart(facility):
    extra = (await facility.create_door(3, label_text="Annex 3")).door
    first = await facility.create_trailer({"carrier": "Swift"})
    second = await facility.create_trailer({"carrier": "Werner"})
    await facility.move_to_door(first.trailer.id, "door-3")
    await facility.move_to_door(second.trailer.id, extra.id)

    heatmap = await facility.heatmap()
    rows = [r for r in heatmap["doors"] if r["doorNumber"] == 3]

    assert [r["doorId"] for r in rows] == ["door-3", extra.id]
    assert [r["carriers"] for r in rows] == [{"Swift": 1}, {"Werner": 1}]


async def test_position_patterns_use_latest_customer(facility):
    created = await facility.create_trailer({"carrier": "Swift", "customer": "Acme"})
    trailer_id = created.trailer.id
    await facility.move_to_door(trailer_id, 3)
    await facility.update_trailer(trailer_id, {"customer": "Globex"})

    patterns = await facility.position_patterns()

    assert patterns["totalPlacements"] == 1
    assert patterns["doorStats"][0]["doorNumber"] == 3
    combo = patterns["topCombos"][0]
    assert (combo["carrier"], combo["customer"]) == ("Swift", "Globex")
    assert combo["preferredDoors"] == [{"door": 3, "count": 1, "percentage": 100}]
