"""
Location state machine: exclusivity, mirrors, auto-assignment and the
supplementary record operations.
"""
from datetime import timedelta

import pytest

from conftest import START, assert_consistent
from dockboard.core.exceptions import ConflictError, InvalidArgumentError, NotFoundError
from dockboard.models.facility import DoorType, FacilityState, TrailerLocation, TrailerStatus
from dockboard.models.history import HistoryAction
from dockboard.services.history_service import HistoryRecorder
from dockboard.services.location_state_machine import (
    FacilityStateMachine,
    can_transition,
    next_in_queue,
)


def _create(machine, number, carrier="Swift", staged=False, **fields):
    result = machine.create_trailer({"carrier": carrier, "number": number, **fields}, staged=staged)
    return result.trailer


def _actions(machine):
    return [entry.action for entry in machine.recorder.entries]


# =============================================================================
# TRANSITION TABLE
# =============================================================================

def test_shipped_is_terminal():
    for location in TrailerLocation:
        assert not can_transition(TrailerLocation.SHIPPED, location)


def test_queue_only_entered_from_staging_or_appointments():
    sources = [loc for loc in TrailerLocation if can_transition(loc, TrailerLocation.QUEUED)]
    assert set(sources) == {
        TrailerLocation.STAGING,
        TrailerLocation.APPOINTMENT_QUEUE,
        TrailerLocation.QUEUED,
    }


# =============================================================================
# MOVES
# =============================================================================

def test_round_trip_door_yard_slot_shipped(machine):
    trailer = _create(machine, "T100")
    assert trailer.location == TrailerLocation.YARD
    assert trailer in machine.state.yard_trailers

    machine.move_to_door(trailer.id, "5")
    door = machine.state.find_door(5)
    assert trailer.location == TrailerLocation.DOOR
    assert trailer.door_number == 5
    assert door.trailer_id == trailer.id
    assert_consistent(machine.state)

    machine.move_to_yard(trailer.id)
    assert door.trailer_id is None
    assert trailer.door_id is None
    assert trailer in machine.state.yard_trailers
    assert_consistent(machine.state)

    machine.move_to_yard_slot(trailer.id, 12)
    slot = machine.state.find_slot(12)
    assert slot.trailer_id == trailer.id
    assert trailer.yard_slot_number == 12
    assert trailer in machine.state.trailers
    assert_consistent(machine.state)

    machine.ship(trailer.id)
    assert slot.trailer_id is None
    assert trailer.location == TrailerLocation.SHIPPED
    assert trailer.shipped_at == START
    assert trailer.previous_location == "Yard Slot 12"
    assert machine.state.shipped_trailers == [trailer]
    assert list(machine.state.active_trailers()) == []
    assert_consistent(machine.state)

    assert _actions(machine) == [
        HistoryAction.TRAILER_CREATED.value,
        HistoryAction.MOVED_TO_DOOR.value,
        HistoryAction.MOVED_TO_YARD.value,
        HistoryAction.MOVED_TO_YARD_SLOT.value,
        HistoryAction.TRAILER_SHIPPED.value,
    ]


def test_moving_between_doors_frees_the_old_door(machine):
    trailer = _create(machine, "T1")
    machine.move_to_door(trailer.id, 2)
    result = machine.move_to_door(trailer.id, 3)

    assert machine.state.find_door(2).trailer_id is None
    assert machine.state.find_door(3).trailer_id == trailer.id
    assert result.entry.model_extra["fromDoorNum"] == 2
    assert result.entry.previous_location == "Door 2"
    assert_consistent(machine.state)


def test_move_to_same_door_is_a_conflict(machine):
    trailer = _create(machine, "T1")
    machine.move_to_door(trailer.id, 4)
    with pytest.raises(ConflictError):
        machine.move_to_door(trailer.id, 4)


def test_occupied_door_evicts_previous_trailer(machine):
    first = _create(machine, "T1")
    second = _create(machine, "T2")
    machine.move_to_door(first.id, 3)

    result = machine.move_to_door(second.id, 3)

    assert result.evicted == [first]
    assert first.location == TrailerLocation.YARD
    assert first.door_id is None
    assert machine.state.find_door(3).trailer_id == second.id
    eviction = [e for e in machine.recorder.entries if e.action == HistoryAction.MOVED_TO_YARD.value][-1]
    assert eviction.trailer_id == first.id
    assert eviction.model_extra["reason"] == "Replaced by new trailer"
    assert_consistent(machine.state)


def test_occupied_slot_evicts_previous_trailer(machine):
    first = _create(machine, "T1")
    second = _create(machine, "T2")
    machine.move_to_yard_slot(first.id, 1)
    machine.move_to_yard_slot(second.id, 1)

    assert first.location == TrailerLocation.YARD
    assert machine.state.find_slot(1).trailer_id == second.id
    assert_consistent(machine.state)


def test_blank_door_rejects_trailers():
    state = FacilityState()
    machine = FacilityStateMachine(state, HistoryRecorder(clock=START), START)
    machine.setup_facility(num_doors=2, num_yard_slots=0, num_dumpsters=1, num_ramps=1)
    dumpster = next(d for d in state.doors if d.label_text == "Dumpster 1")
    assert dumpster.type == DoorType.BLANK
    assert dumpster.number is None

    trailer = _create(machine, "T1")
    with pytest.raises(InvalidArgumentError):
        machine.move_to_door(trailer.id, dumpster.id)
    assert trailer.location == TrailerLocation.YARD


def test_out_of_service_door_rejects_trailers(machine):
    machine.update_door("door-6", {"in_service": False})
    trailer = _create(machine, "T1")
    with pytest.raises(InvalidArgumentError):
        machine.move_to_door(trailer.id, 6)


def test_occupied_door_cannot_go_out_of_service(machine):
    trailer = _create(machine, "T1")
    machine.move_to_door(trailer.id, 6)
    with pytest.raises(ConflictError):
        machine.update_door("door-6", {"in_service": False})


def test_unknown_door_and_trailer(machine):
    trailer = _create(machine, "T1")
    with pytest.raises(NotFoundError):
        machine.move_to_door(trailer.id, 99)
    with pytest.raises(NotFoundError):
        machine.move_to_door("missing", 1)


def test_shipped_trailer_cannot_move(machine):
    trailer = _create(machine, "T1")
    machine.ship(trailer.id)
    with pytest.raises(ConflictError):
        machine.move_to_door(trailer.id, 1)
    with pytest.raises(ConflictError):
        machine.move_to_yard(trailer.id)


def test_move_from_yard_slot_requires_a_slot(machine):
    trailer = _create(machine, "T1")
    with pytest.raises(ConflictError):
        machine.move_to_yard(trailer.id, from_location=TrailerLocation.YARD_SLOT)


# =============================================================================
# QUEUES & AUTO-ASSIGN
# =============================================================================

def test_auto_assign_is_first_come_first_served(machine):
    occupant = _create(machine, "X")
    machine.move_to_door(occupant.id, 7)

    first = _create(machine, "Y", staged=True)
    machine.enqueue(first.id, 7)
    machine.now = START + timedelta(minutes=5)
    second = _create(machine, "Z", staged=True)
    machine.enqueue(second.id, 7)

    machine.now = START + timedelta(hours=1)
    result = machine.move_to_yard(occupant.id)

    assert result.auto_assigned.trailer is first
    assert first.location == TrailerLocation.DOOR
    assert first.door_number == 7
    assert first.dwell_resets[-1] == machine.now
    assert second.location == TrailerLocation.QUEUED
    assert machine.state.queued_trailers == [second]
    assert result.entry.auto_assigned_trailer_id == first.id
    assert result.entry.auto_assigned_to_door == 7
    assert_consistent(machine.state)


def test_queue_ties_broken_by_position(machine):
    first = _create(machine, "A", staged=True)
    machine.enqueue(first.id, 2)
    second = _create(machine, "B", staged=True)
    machine.enqueue(second.id, 2)
    assert first.queued_at == second.queued_at
    assert next_in_queue(machine.state, "door-2") is first


def test_shipping_a_docked_trailer_cascades(machine):
    occupant = _create(machine, "X")
    machine.move_to_door(occupant.id, 1)
    waiting = _create(machine, "W", staged=True)
    machine.enqueue(waiting.id, 1)

    result = machine.ship(occupant.id)

    assert result.auto_assigned.trailer is waiting
    assert machine.state.find_door(1).trailer_id == waiting.id
    assert result.entry.door_number == 1
    assert_consistent(machine.state)


def test_deleting_a_docked_trailer_cascades(machine):
    occupant = _create(machine, "X")
    machine.move_to_door(occupant.id, 1)
    waiting = _create(machine, "W", staged=True)
    machine.enqueue(waiting.id, 1)

    machine.delete_trailer(occupant.id)

    assert machine.state.find_trailer(occupant.id) is None
    assert machine.state.find_door(1).trailer_id == waiting.id
    assert _actions(machine)[-1] == HistoryAction.TRAILER_DELETED.value
    assert_consistent(machine.state)


def test_enqueue_requires_staging_or_appointment(machine):
    trailer = _create(machine, "T1")
    with pytest.raises(ConflictError):
        machine.enqueue(trailer.id, 3)


def test_reassign_goes_to_back_of_new_line(machine):
    early = _create(machine, "E", staged=True)
    machine.enqueue(early.id, 4)
    machine.now = START + timedelta(minutes=10)
    late = _create(machine, "L", staged=True)
    machine.enqueue(late.id, 4)

    machine.now = START + timedelta(minutes=20)
    machine.reassign(early.id, 4)

    assert early.queued_at == machine.now
    assert next_in_queue(machine.state, "door-4") is late


def test_cancel_queue_returns_to_yard(machine):
    trailer = _create(machine, "T1", staged=True)
    machine.enqueue(trailer.id, 3)
    machine.cancel_queue(trailer.id)

    assert trailer.location == TrailerLocation.YARD
    assert trailer.target_door_id is None
    assert trailer.queued_at is None
    assert machine.state.queued_trailers == []


def test_appointment_queue_flow(machine):
    first = _create(machine, "A1", staged=True)
    machine.send_to_appointment_queue(first.id)
    assert machine.state.staging is None

    second = _create(machine, "A2", staged=True)
    machine.send_to_appointment_queue(second.id)
    assert [t.id for t in machine.state.appointment_queue] == [first.id, second.id]

    machine.reorder_appointment_queue([second.id, "unknown"])
    assert [t.id for t in machine.state.appointment_queue] == [second.id, first.id]

    machine.check_in(first.id)
    assert machine.state.staging is first
    with pytest.raises(ConflictError):
        machine.check_in(second.id)

    machine.cancel_appointment(second.id)
    assert second.location == TrailerLocation.YARD
    assert_consistent(machine.state)


def test_staged_create_conflicts_when_staging_occupied(machine):
    _create(machine, "S1", staged=True)
    with pytest.raises(ConflictError):
        _create(machine, "S2", staged=True)


def test_assign_next(machine):
    result = machine.assign_next(8)
    assert result.trailer is None

    trailer = _create(machine, "Q", staged=True)
    machine.enqueue(trailer.id, 8)
    result = machine.assign_next(8)

    assert result.trailer is trailer
    assert machine.state.find_door(8).trailer_id == trailer.id
    with pytest.raises(ConflictError):
        machine.assign_next(8)


def test_auto_assign_skips_a_door_taken_out_of_service(machine):
    occupant = _create(machine, "X")
    machine.move_to_door(occupant.id, 9)
    waiting = _create(machine, "W", staged=True)
    machine.enqueue(waiting.id, 9)

    machine.move_to_yard(occupant.id)
    assert waiting.location == TrailerLocation.DOOR

    machine.move_to_yard(waiting.id)
    machine.update_door("door-9", {"in_service": False})
    assert machine.auto_assign(machine.state.find_door(9)) is None


# =============================================================================
# RECORDS
# =============================================================================

def test_trailer_numbers_are_unique_among_active_trailers(machine):
    first = _create(machine, "DUP")
    with pytest.raises(ConflictError):
        _create(machine, "DUP")
    machine.ship(first.id)
    _create(machine, "DUP")


def test_unknown_carrier_is_created(machine):
    _create(machine, "T1", carrier="Acme Freight")
    assert machine.state.find_carrier_by_name("acme freight") is not None


def test_status_only_update_records_loaded_and_mirrors_door(machine):
    trailer = _create(machine, "T1")
    machine.move_to_door(trailer.id, 2)

    result = machine.update_trailer(trailer.id, {"status": "loaded"})

    assert trailer.status == TrailerStatus.LOADED
    assert machine.state.find_door(2).status == "loaded"
    assert result.entry.action == HistoryAction.TRAILER_LOADED.value
    assert result.entry.changes[0].field == "status"
    assert result.entry.changes[0].from_ == "empty"


def test_multi_field_update_records_changes(machine):
    trailer = _create(machine, "T1")
    result = machine.update_trailer(trailer.id, {"customer": "Globex", "load_number": "L-9"})

    assert result.entry.action == HistoryAction.TRAILER_UPDATED.value
    assert {c.field for c in result.entry.changes} == {"customer", "loadNumber"}


def test_null_updates_leave_required_fields_unchanged(machine):
    trailer = _create(machine, "T1", is_live=True)
    result = machine.update_trailer(
        trailer.id,
        {"is_live": None, "status": None, "carrier": None, "created_at": None, "customer": "Globex"},
    )

    assert trailer.is_live is True
    assert trailer.status == TrailerStatus.EMPTY
    assert trailer.carrier == "Swift"
    assert trailer.created_at == START
    assert [c.field for c in result.entry.changes] == ["customer"]
    assert FacilityState.model_validate(machine.state.to_document()) == machine.state


def test_changed_created_at_records_a_dwell_reset(machine):
    trailer = _create(machine, "T1")
    new_start = START - timedelta(hours=1)
    machine.update_trailer(trailer.id, {"created_at": new_start})

    assert trailer.created_at == new_start
    assert trailer.dwell_resets == [START]


def test_dwell_resets_are_capped():
    state = FacilityState()
    machine = FacilityStateMachine(state, HistoryRecorder(), START, max_dwell_resets=3)
    trailer = _create(machine, "T1")
    for hour in range(5):
        machine.now = START + timedelta(hours=hour)
        machine.reset_dwell(trailer.id)
    assert len(trailer.dwell_resets) == 3
    assert trailer.dwell_resets[-1] == START + timedelta(hours=4)


def test_delete_shipped_record(machine):
    trailer = _create(machine, "T1")
    machine.ship(trailer.id)
    machine.delete_shipped(trailer.id)
    assert machine.state.shipped_trailers == []
    with pytest.raises(NotFoundError):
        machine.delete_shipped(trailer.id)


def test_carrier_in_use_cannot_be_deleted(machine):
    _create(machine, "T1", carrier="Werner")
    carrier = machine.state.find_carrier_by_name("werner")
    with pytest.raises(ConflictError):
        machine.delete_carrier(carrier.id)


def test_duplicate_carrier_name(machine):
    machine.create_carrier("Prime")
    with pytest.raises(ConflictError):
        machine.create_carrier("PRIME")


# =============================================================================
# DOORS, SLOTS & SETUP
# =============================================================================

def test_delete_door_moves_occupant_and_queue_to_yard(machine):
    occupant = _create(machine, "X")
    machine.move_to_door(occupant.id, 5)
    waiting = _create(machine, "W", staged=True)
    machine.enqueue(waiting.id, 5)

    result = machine.delete_door("door-5")

    assert machine.state.find_door("door-5") is None
    assert occupant.location == TrailerLocation.YARD
    assert waiting.location == TrailerLocation.YARD
    assert {t.id for t in result.evicted} == {occupant.id, waiting.id}
    assert_consistent(machine.state)


def test_door_renumber_is_mirrored(machine):
    trailer = _create(machine, "T1")
    machine.move_to_door(trailer.id, 1)
    machine.update_door("door-1", {"number": 101})
    assert trailer.door_number == 101


def test_yard_slot_lifecycle(machine):
    result = machine.create_yard_slot()
    assert result.slot.number == 16
    with pytest.raises(ConflictError):
        machine.create_yard_slot(16)

    trailer = _create(machine, "T1")
    machine.move_to_yard_slot(trailer.id, 16)
    machine.update_yard_slot(result.slot.id, 40)
    assert trailer.yard_slot_number == 40

    machine.delete_yard_slot(result.slot.id)
    assert trailer.location == TrailerLocation.YARD
    assert_consistent(machine.state)


def test_reorder_doors(machine):
    ids = [d.id for d in machine.state.doors]
    machine.reorder_doors([ids[2], ids[0]])
    assert [d.id for d in machine.state.doors][:3] == [ids[2], ids[0], ids[1]]
    assert [d.order for d in machine.state.doors] == list(range(len(ids)))


def test_setup_runs_once(machine):
    with pytest.raises(ConflictError):
        machine.setup_facility()


def test_setup_validates_ranges():
    machine = FacilityStateMachine(FacilityState(), HistoryRecorder(), START)
    with pytest.raises(InvalidArgumentError):
        machine.setup_facility(num_doors=501)
    assert not machine.state.is_configured


def test_setup_numbers_from_start():
    state = FacilityState()
    machine = FacilityStateMachine(state, HistoryRecorder(), START)
    machine.setup_facility(num_doors=3, num_yard_slots=2, door_start=10, yard_start=50)
    assert [d.number for d in state.doors] == [10, 11, 12]
    assert [s.id for s in state.yard_slots] == ["yard-50", "yard-51"]
