"""
Door usage analytics: the live heatmap and historical placement patterns.
"""
from collections import Counter
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from dockboard.core.clock import day_bounds, facility_tz
from dockboard.models.facility import DoorType, FacilityState, TrailerStatus
from dockboard.models.history import HistoryAction, HistoryEntry

PLACEMENT_ACTIONS = frozenset({
    HistoryAction.MOVED_TO_DOOR.value,
    HistoryAction.TRAILER_CREATED.value,
})

TOP_COMBOS = 10
TOP_PREFERRED_DOORS = 5


def _ranked(counter: Counter) -> List[List[Any]]:
    return [[name, count] for name, count in counter.most_common()]


def _door_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def build_heatmap(
    state: FacilityState,
    carrier: Optional[str] = None,
    customer: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Current occupancy per usable numbered door, optionally filtered."""
    doors: Dict[str, Dict[str, Any]] = {}
    positions: Dict[str, tuple] = {}
    for door in state.doors:
        if door.type == DoorType.BLANK or not door.in_service or door.number is None:
            continue
        positions[door.id] = (door.number, door.order)
        doors[door.id] = {
            "doorId": door.id,
            "doorNumber": door.number,
            "trailerCount": 0,
            "loadedCount": 0,
            "emptyCount": 0,
            "carriers": Counter(),
            "customers": Counter(),
        }

    for trailer in state.trailers:
        stats = doors.get(trailer.door_id) if trailer.door_id else None
        if stats is None:
            continue
        if carrier and trailer.carrier != carrier:
            continue
        if customer and trailer.customer != customer:
            continue
        stats["trailerCount"] += 1
        if trailer.status == TrailerStatus.LOADED:
            stats["loadedCount"] += 1
        else:
            stats["emptyCount"] += 1
        if trailer.carrier:
            stats["carriers"][trailer.carrier] += 1
        if trailer.customer:
            stats["customers"][trailer.customer] += 1

    rows = []
    for door_id in sorted(doors, key=positions.__getitem__):
        stats = doors[door_id]
        rows.append({**stats, "carriers": dict(stats["carriers"]), "customers": dict(stats["customers"])})

    return {
        "generatedAt": (now or datetime.now(timezone.utc)).isoformat(),
        "filters": {"carrier": carrier, "customer": customer},
        "availableCarriers": sorted({t.carrier for t in state.trailers if t.carrier}),
        "availableCustomers": sorted({t.customer for t in state.trailers if t.customer}),
        "doors": rows,
    }


def _customer_of(entry: HistoryEntry) -> Optional[str]:
    if entry.customer:
        return entry.customer
    for change in entry.changes or []:
        if change.field == "customer" and change.to:
            return change.to
    return None


def build_position_patterns(
    entries: Sequence[HistoryEntry],
    carrier: Optional[str] = None,
    customer: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Where carrier / customer combinations usually get placed.

    Every MOVED_TO_DOOR or TRAILER_CREATED entry with a door number counts
    as one placement. A trailer's customer is the latest one the log knows.
    """
    tz = facility_tz()
    start = day_bounds(date_from, tz)[0] if date_from else None
    end = day_bounds(date_to, tz)[1] if date_to else None

    chronological = list(reversed(entries))
    trailer_customers: Dict[str, str] = {}
    all_carriers = set()
    all_customers = set()
    for entry in chronological:
        entry_customer = _customer_of(entry)
        if entry_customer and entry.trailer_id:
            trailer_customers[entry.trailer_id] = entry_customer
        if entry.carrier:
            all_carriers.add(entry.carrier)
        if entry_customer:
            all_customers.add(entry_customer)

    frequency: Dict[int, Dict[str, Any]] = {}
    combos: Dict[tuple, Dict[str, Any]] = {}
    for entry in chronological:
        if entry.action not in PLACEMENT_ACTIONS:
            continue
        door_number = _door_int(entry.door_number)
        if door_number is None:
            continue
        if start is not None and entry.timestamp < start:
            continue
        if end is not None and entry.timestamp > end:
            continue

        entry_customer = trailer_customers.get(entry.trailer_id) or entry.customer
        if carrier and entry.carrier != carrier:
            continue
        if customer and entry_customer != customer:
            continue

        stats = frequency.setdefault(door_number, {"count": 0, "carriers": Counter(), "customers": Counter()})
        stats["count"] += 1
        if entry.carrier:
            stats["carriers"][entry.carrier] += 1
        if entry_customer:
            stats["customers"][entry_customer] += 1

        if entry.carrier and entry_customer:
            combo = combos.setdefault(
                (entry.carrier, entry_customer),
                {"carrier": entry.carrier, "customer": entry_customer, "doors": Counter(), "total": 0},
            )
            combo["doors"][door_number] += 1
            combo["total"] += 1

    door_stats = sorted(
        (
            {
                "doorNumber": number,
                "frequency": stats["count"],
                "carriers": _ranked(stats["carriers"]),
                "customers": _ranked(stats["customers"]),
            }
            for number, stats in frequency.items()
        ),
        key=lambda row: row["frequency"],
        reverse=True,
    )

    door_range = None
    if frequency:
        numbers = sorted(frequency)
        door_range = {
            "min": numbers[0],
            "max": numbers[-1],
            "avg": round(sum(numbers) / len(numbers), 1),
        }

    top_combos = []
    for combo in sorted(combos.values(), key=lambda c: c["total"], reverse=True)[:TOP_COMBOS]:
        top_combos.append({
            "carrier": combo["carrier"],
            "customer": combo["customer"],
            "total": combo["total"],
            "preferredDoors": [
                {"door": door, "count": count, "percentage": round(count / combo["total"] * 100)}
                for door, count in combo["doors"].most_common(TOP_PREFERRED_DOORS)
            ],
        })

    return {
        "generatedAt": (now or datetime.now(timezone.utc)).isoformat(),
        "filters": {"carrier": carrier, "customer": customer},
        "availableCarriers": sorted(all_carriers),
        "availableCustomers": sorted(all_customers),
        "totalPlacements": sum(stats["count"] for stats in frequency.values()),
        "doorRange": door_range,
        "doorStats": door_stats,
        "topCombos": top_combos,
    }
