"""
Dwell calculator, real-time violations and the analytics read models.
"""
import asyncio
import logging
from datetime import date, datetime, timedelta, timezone

import pytest

from conftest import START
from dockboard.core.exceptions import InvalidArgumentError
from dockboard.models.analytics import DailyStat
from dockboard.models.facility import FacilityState
from dockboard.models.history import HistoryAction, HistoryEntry
from dockboard.services.dwell_service import (
    compute_daily_stat,
    current_violations,
    effective_dwell_hours,
    parse_day,
    summarize_period,
)
from dockboard.services.history_service import HistoryRecorder
from dockboard.services.location_state_machine import FacilityStateMachine

DAY = date(2026, 10, 17)
UTC = timezone.utc


def _at(hour, minute=0, day=DAY):
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=UTC)


def _entry(action, trailer_id, when, door=4, carrier="Swift"):
    return HistoryEntry(
        action=action.value,
        timestamp=when,
        trailer_id=trailer_id,
        carrier=carrier,
        door_number=door,
    )


def _newest_first(*entries):
    return sorted(entries, key=lambda e: e.timestamp, reverse=True)


# =============================================================================
# DAILY CALCULATION
# =============================================================================

def test_two_and_a_half_hours_at_a_door_is_a_violation():
    entries = _newest_first(
        _entry(HistoryAction.MOVED_TO_DOOR, "b", _at(9)),
        _entry(HistoryAction.MOVED_TO_YARD, "b", _at(11, 30)),
    )
    stat = compute_daily_stat(DAY, entries, FacilityState(), tz=UTC, now=_at(23))

    assert stat.count == 1
    assert stat.avg_dwell == 2.5
    assert stat.max_dwell == 2.5
    assert stat.violations == 1
    assert stat.violators[0].trailer_id == "b"
    assert stat.violators[0].door_number == 4
    assert stat.violators[0].dwell_hours == 2.5


def test_trailer_docked_since_yesterday_counts_the_whole_day_uncapped():
    yesterday = START - timedelta(days=1)
    state = FacilityState()
    machine = FacilityStateMachine(state, HistoryRecorder(clock=yesterday), yesterday)
    machine.setup_facility(num_doors=3, num_yard_slots=0)
    trailer = machine.create_trailer({"carrier": "Swift"}).trailer
    machine.move_to_door(trailer.id, 2)

    entries = list(reversed(machine.recorder.entries))
    stat = compute_daily_stat(DAY, entries, state, tz=UTC, now=_at(23, 59))

    assert stat.count == 1
    assert stat.max_dwell == 24.0
    assert stat.violators[0].door_number == 2


def test_short_visits_are_noise():
    entries = _newest_first(
        _entry(HistoryAction.MOVED_TO_DOOR, "n", _at(10)),
        _entry(HistoryAction.MOVED_TO_YARD, "n", _at(10, 3)),
    )
    stat = compute_daily_stat(DAY, entries, FacilityState(), tz=UTC)
    assert stat.count == 0
    assert stat.avg_dwell == 0


def test_arrivals_pair_with_departures_by_index():
    entries = _newest_first(
        _entry(HistoryAction.MOVED_TO_DOOR, "p", _at(6), door=1),
        _entry(HistoryAction.MOVED_TO_YARD, "p", _at(7)),
        _entry(HistoryAction.MOVED_TO_DOOR, "p", _at(12), door=2),
        _entry(HistoryAction.TRAILER_DELETED, "p", _at(15)),
    )
    stat = compute_daily_stat(DAY, entries, FacilityState(), tz=UTC)

    assert stat.count == 2
    assert stat.avg_dwell == 2.0
    assert stat.max_dwell == 3.0
    assert [v.door_number for v in stat.violators] == [2]


def test_missing_departure_runs_to_end_of_day():
    entries = [_entry(HistoryAction.MOVED_TO_DOOR, "m", _at(21))]
    stat = compute_daily_stat(DAY, entries, FacilityState(), tz=UTC)
    assert stat.max_dwell == 3.0
    assert stat.violations == 1


def test_entries_outside_the_day_are_ignored():
    entries = _newest_first(
        _entry(HistoryAction.MOVED_TO_DOOR, "o", _at(9, day=DAY - timedelta(days=1))),
        _entry(HistoryAction.MOVED_TO_YARD, "o", _at(11, day=DAY - timedelta(days=1))),
    )
    stat = compute_daily_stat(DAY, entries, FacilityState(), tz=UTC)
    assert stat.count == 0


def test_violators_are_capped_but_violations_are_not():
    entries = []
    for i in range(12):
        entries.append(_entry(HistoryAction.MOVED_TO_DOOR, f"t{i}", _at(8, i)))
        entries.append(_entry(HistoryAction.MOVED_TO_YARD, f"t{i}", _at(11, i)))
    stat = compute_daily_stat(DAY, _newest_first(*entries), FacilityState(), tz=UTC)

    assert stat.violations == 12
    assert len(stat.violators) == 10
    assert [v.trailer_id for v in stat.violators] == [f"t{i}" for i in range(10)]


def test_parse_day():
    assert parse_day("2026-10-17") == DAY
    assert parse_day(DAY) == DAY
    with pytest.raises(InvalidArgumentError):
        parse_day("17/10/2026")


# =============================================================================
# REAL-TIME DWELL
# =============================================================================

def test_effective_dwell_is_capped():
    now = START + timedelta(hours=9)
    assert effective_dwell_hours(now - timedelta(hours=3), [], now) == 3.0
    assert effective_dwell_hours(now - timedelta(hours=9), [], now) == 6.0


def test_recent_reset_restarts_the_clock():
    now = START + timedelta(hours=9)
    created = now - timedelta(hours=9)
    assert effective_dwell_hours(created, [now - timedelta(hours=1)], now) == 1.0
    # Resets older than the cap window are ignored
    assert effective_dwell_hours(created, [now - timedelta(hours=7)], now) == 6.0


def test_current_violations_between_threshold_and_cap(machine):
    over = machine.create_trailer({"carrier": "Swift", "number": "OVER"}).trailer
    machine.move_to_door(over.id, 1)

    machine.now = START + timedelta(hours=2, minutes=30)
    fresh = machine.create_trailer({"carrier": "Swift", "number": "FRESH"}).trailer
    machine.move_to_door(fresh.id, 2)

    found = current_violations(machine.state, now=START + timedelta(hours=3))
    assert [v["number"] for v in found] == ["OVER"]
    assert found[0]["dwellHours"] == 3.0
    assert found[0]["location"] == "Door 1"

    # Past the cap the first trailer drops out of the live view
    later = current_violations(machine.state, now=START + timedelta(hours=7))
    assert [v["number"] for v in later] == ["FRESH"]


# =============================================================================
# PERIOD SUMMARIES
# =============================================================================

def _stat(day, count, avg, violations=0):
    return DailyStat(date=day, count=count, avg_dwell=avg, max_dwell=avg, violations=violations)


def test_day_summary_covers_the_last_seven_days():
    daily = {"2026-10-16": _stat("2026-10-16", 3, 1.5)}
    rows = summarize_period("day", daily, DAY)

    assert len(rows) == 7
    assert rows[-1]["date"] == "2026-10-17"
    assert rows[-1]["label"] == "Sat"
    assert rows[-2]["avgDwell"] == 1.5
    assert rows[0]["count"] == 0


def test_week_summary_is_count_weighted_from_sunday():
    daily = {
        "2026-10-12": _stat("2026-10-12", 2, 1.0),
        "2026-10-13": _stat("2026-10-13", 2, 3.0, violations=2),
    }
    rows = summarize_period("week", daily, DAY)

    assert rows == [{
        "date": "2026-10-11",
        "label": "Week of Oct 11",
        "avgDwell": 2.0,
        "maxDwell": 3.0,
        "count": 4,
        "violations": 2,
    }]


def test_month_summary_keeps_three_months():
    daily = {
        f"2026-{month:02d}-01": _stat(f"2026-{month:02d}-01", 1, 1.0)
        for month in (6, 7, 8, 9, 10)
    }
    rows = summarize_period("month", daily, DAY)
    assert [r["label"] for r in rows] == ["August", "September", "October"]


def test_unknown_period():
    with pytest.raises(InvalidArgumentError):
        summarize_period("year", {}, DAY)


# =============================================================================
# DWELL SERVICE
# =============================================================================

async def test_calculate_daily_from_live_moves(facility, clock, caplog):
    created = await facility.create_trailer({"carrier": "Swift", "number": "B"})
    trailer_id = created.trailer.id
    clock.advance(hours=1)
    await facility.move_to_door(trailer_id, 4)
    clock.advance(hours=2, minutes=30)
    await facility.move_to_yard(trailer_id)

    with caplog.at_level(logging.INFO, logger="dockboard.services.dwell_service"):
        stat = await facility.calculate_daily("2026-10-17")

    assert stat.count == 1
    assert stat.avg_dwell == 2.5
    assert await facility.stores.analytics.get_daily("2026-10-17") == stat
    assert "[Analytics] Daily: 2026-10-17 - avg 2.5h, max 2.5h, 1 trailers, 1 violations" in caplog.text


async def test_recalculation_is_idempotent(facility):
    first = await facility.calculate_daily("2026-10-16")
    second = await facility.calculate_daily("2026-10-16")
    assert first.model_dump(exclude={"calculated_at"}) == second.model_dump(exclude={"calculated_at"})
    assert list(await facility.stores.analytics.all_daily()) == ["2026-10-16"]


async def test_old_aggregates_are_pruned(facility):
    await facility.stores.analytics.set_daily("2026-06-01", _stat("2026-06-01", 1, 1.0))
    await facility.stores.analytics.set_daily("2026-09-01", _stat("2026-09-01", 1, 1.0))

    await facility.calculate_daily()

    assert set(await facility.stores.analytics.all_daily()) == {"2026-09-01", "2026-10-17"}


async def test_summary_calculates_today_lazily(facility):
    summary = await facility.dwell_summary("day")
    assert summary["period"] == "day"
    assert await facility.stores.analytics.get_daily("2026-10-17") is not None


async def test_current_violations_leave_analytics_alone(facility, clock):
    created = await facility.create_trailer({"carrier": "Swift", "number": "LIVE"})
    await facility.move_to_door(created.trailer.id, 1)
    clock.advance(hours=3)

    result = await facility.current_violations()

    assert result["count"] == 1
    assert await facility.stores.analytics.all_daily() == {}


async def test_daily_calculation_waits_for_the_write_lock(facility):
    async with facility.stores.lock:
        task = asyncio.create_task(facility.calculate_daily("2026-10-16"))
        await asyncio.sleep(0.01)
        assert not task.done()
        assert await facility.stores.analytics.all_daily() == {}

    await task
    assert list(await facility.stores.analytics.all_daily()) == ["2026-10-16"]


async def test_clear_and_calculation_do_not_interleave(facility):
    await facility.calculate_daily("2026-10-15")

    await asyncio.gather(facility.clear_analytics(), facility.calculate_daily("2026-10-16"))

    remaining = set(await facility.stores.analytics.all_daily())
    assert "2026-10-15" not in remaining
    assert remaining <= {"2026-10-16"}
