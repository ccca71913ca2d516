"""
Dwell Calculator

Two views of how long trailers sit at dock doors:

1. Daily aggregates, rebuilt from the history log. Arrivals come from
   MOVED_TO_DOOR, departures from MOVED_TO_YARD and TRAILER_DELETED; the
   i-th arrival of a trailer is paired with its i-th departure. Trailers
   still docked with no movement that day count from the start of the day.
   These figures are NOT capped.
2. Real-time effective dwell for docked trailers, capped at DWELL_CAP_HOURS
   and restarted by recent dwell resets.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

from dockboard.config import settings
from dockboard.core.clock import day_bounds, facility_tz, hours_between, local_today
from dockboard.core.exceptions import InvalidArgumentError
from dockboard.models.analytics import DailyStat, Violator
from dockboard.models.facility import FacilityState
from dockboard.models.history import ARRIVAL_ACTIONS, DEPARTURE_ACTIONS, HistoryEntry

logger = logging.getLogger(__name__)

MAX_VIOLATORS = 10
PERIODS = ("day", "week", "month")


def effective_dwell_hours(
    created_at: datetime,
    resets: Sequence[datetime] = (),
    now: Optional[datetime] = None,
    cap_hours: float = 6.0,
) -> float:
    """
    Hours since the newest dwell reset within the cap window, else since
    created_at. Never more than cap_hours.
    """
    now = now or datetime.now(timezone.utc)
    recent = [r for r in resets if hours_between(r, now) < cap_hours]
    start = max(recent) if recent else created_at
    return max(0.0, min(hours_between(start, now), cap_hours))


@dataclass
class _Occupancy:
    carrier: Optional[str] = None
    arrivals: List[datetime] = field(default_factory=list)
    departures: List[datetime] = field(default_factory=list)
    door_numbers: List[Any] = field(default_factory=list)


def compute_daily_stat(
    day: date,
    entries: Sequence[HistoryEntry],
    state: FacilityState,
    tz=None,
    now: Optional[datetime] = None,
) -> DailyStat:
    """
    Aggregate door dwell for one facility-local day.

    Args:
        day: The calendar day to aggregate
        entries: History log, newest first
        state: Current facility snapshot, for trailers still docked
    """
    day_start, day_end = day_bounds(day, tz or facility_tz())
    occupancies: Dict[str, _Occupancy] = {}

    # The log is newest first; pairing needs chronological order
    for entry in reversed(entries):
        if not entry.trailer_id or not day_start <= entry.timestamp <= day_end:
            continue
        if entry.action in ARRIVAL_ACTIONS:
            record = occupancies.setdefault(entry.trailer_id, _Occupancy(carrier=entry.carrier))
            record.arrivals.append(entry.timestamp)
            record.door_numbers.append(entry.door_number)
        elif entry.action in DEPARTURE_ACTIONS:
            record = occupancies.setdefault(entry.trailer_id, _Occupancy(carrier=entry.carrier))
            record.departures.append(entry.timestamp)

    # Trailers that arrived before this day and are still docked
    for trailer in state.docked_trailers():
        if trailer.created_at <= day_end and trailer.id not in occupancies:
            occupancies[trailer.id] = _Occupancy(
                carrier=trailer.carrier,
                arrivals=[max(trailer.created_at, day_start)],
                door_numbers=[trailer.door_number],
            )

    total = 0.0
    count = 0
    max_dwell = 0.0
    violators: List[Violator] = []

    for trailer_id, record in occupancies.items():
        for index, arrival in enumerate(record.arrivals):
            departure = record.departures[index] if index < len(record.departures) else day_end
            arrival = max(arrival, day_start)
            dwell = hours_between(arrival, departure)
            if dwell < settings.DWELL_MIN_HOURS:
                continue
            total += dwell
            count += 1
            max_dwell = max(max_dwell, dwell)
            if dwell >= settings.DWELL_VIOLATION_HOURS:
                violators.append(Violator(
                    trailer_id=trailer_id,
                    carrier=record.carrier,
                    door_number=record.door_numbers[index],
                    dwell_hours=round(dwell, 2),
                ))

    return DailyStat(
        date=day.isoformat(),
        avg_dwell=round(total / count, 2) if count else 0,
        max_dwell=round(max_dwell, 2),
        count=count,
        violations=len(violators),
        violators=violators[:MAX_VIOLATORS],
        calculated_at=now or datetime.now(timezone.utc),
    )


def current_violations(state: FacilityState, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Docked trailers whose effective dwell is past the violation threshold but under the cap."""
    now = now or datetime.now(timezone.utc)
    found = []
    for trailer in state.docked_trailers():
        hours = effective_dwell_hours(
            trailer.created_at,
            trailer.dwell_resets,
            now,
            cap_hours=settings.DWELL_CAP_HOURS,
        )
        if settings.DWELL_VIOLATION_HOURS <= hours < settings.DWELL_CAP_HOURS:
            found.append({
                "id": trailer.id,
                "carrier": trailer.carrier,
                "number": trailer.number,
                "loadNumber": trailer.load_number,
                "customer": trailer.customer,
                "dwellHours": round(hours, 2),
                "doorNumber": trailer.door_number,
                "location": f"Door {trailer.door_number}",
                "status": trailer.status.value,
            })
    found.sort(key=lambda item: item["dwellHours"], reverse=True)
    return found


def parse_day(value: Union[str, date, None], tz=None) -> date:
    """Accept an ISO date, a date, or None for today."""
    if value is None:
        return local_today(tz=tz)
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidArgumentError("Invalid date, expected YYYY-MM-DD", details={"date": value})


def _rollup(stats: List[DailyStat]) -> Dict[str, Any]:
    count = sum(s.count for s in stats)
    weighted = sum(s.avg_dwell * s.count for s in stats)
    return {
        "avgDwell": round(weighted / count, 2) if count else 0,
        "maxDwell": max((s.max_dwell for s in stats), default=0),
        "count": count,
        "violations": sum(s.violations for s in stats),
    }


def summarize_period(period: str, daily: Dict[str, DailyStat], today: date) -> List[Dict[str, Any]]:
    """
    Chart rows for the analytics tab.

    day   - the last 7 days
    week  - the last 4 Sunday-start weeks, count-weighted
    month - the last 3 calendar months, count-weighted
    """
    if period not in PERIODS:
        raise InvalidArgumentError(f"Unknown period '{period}'", details={"allowed": list(PERIODS)})

    if period == "day":
        rows = []
        for offset in range(6, -1, -1):
            day = today - timedelta(days=offset)
            stat = daily.get(day.isoformat())
            rows.append({
                "date": day.isoformat(),
                "label": day.strftime("%a"),
                "avgDwell": stat.avg_dwell if stat else 0,
                "maxDwell": stat.max_dwell if stat else 0,
                "count": stat.count if stat else 0,
                "violations": stat.violations if stat else 0,
            })
        return rows

    groups: Dict[str, List[DailyStat]] = {}
    for key, stat in daily.items():
        try:
            day = date.fromisoformat(key)
        except ValueError:
            continue
        if period == "week":
            # isoweekday: Monday=1 .. Sunday=7
            group = (day - timedelta(days=day.isoweekday() % 7)).isoformat()
        else:
            group = f"{day.year}-{day.month:02d}"
        groups.setdefault(group, []).append(stat)

    keep = 4 if period == "week" else 3
    rows = []
    for group in sorted(groups)[-keep:]:
        if period == "week":
            start = date.fromisoformat(group)
            label = f"Week of {start.strftime('%b')} {start.day}"
        else:
            label = date.fromisoformat(f"{group}-01").strftime("%B")
        rows.append({"date": group, "label": label, **_rollup(groups[group])})
    return rows


def violation_series(daily: Dict[str, DailyStat], today: date) -> List[Dict[str, Any]]:
    """Violation counts and violators for the last 7 days."""
    rows = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        stat = daily.get(day.isoformat())
        rows.append({
            "date": day.isoformat(),
            "label": day.strftime("%a"),
            "count": stat.violations if stat else 0,
            "avgDwell": stat.avg_dwell if stat else 0,
            "trailers": [v.to_document() for v in stat.violators] if stat else [],
        })
    return rows


class DwellService:
    """
    Runs the daily dwell calculation against the stores.

    Usage:
        service = DwellService(stores)
        stat = await service.calculate_daily("2026-10-17")
    """

    def __init__(self, stores):
        self.stores = stores

    async def calculate_daily(
        self,
        day: Union[str, date, None] = None,
        now: Optional[datetime] = None,
    ) -> DailyStat:
        """Recompute and store one day's aggregate, then prune old days."""
        now = now or datetime.now(timezone.utc)
        tz = facility_tz()
        target = parse_day(day, tz) if day is not None else local_today(now, tz)

        # Shares the write lock with state mutations and clear_analytics
        async with self.stores.lock:
            entries = await self.stores.history.entries()
            state = await self.stores.state.load()
            stat = compute_daily_stat(target, entries, state, tz=tz, now=now)

            await self.stores.analytics.set_daily(stat.date, stat)
            pruned = await self.stores.analytics.prune_older_than(
                settings.ANALYTICS_RETENTION_DAYS,
                today=local_today(now, tz),
            )
        if pruned:
            logger.info(f"[Analytics] Pruned {pruned} daily stats older than {settings.ANALYTICS_RETENTION_DAYS} days")

        logger.info(
            f"[Analytics] Daily: {stat.date} - avg {stat.avg_dwell}h, max {stat.max_dwell}h, "
            f"{stat.count} trailers, {stat.violations} violations"
        )
        return stat

    async def ensure_today(self, now: Optional[datetime] = None) -> None:
        """Calculate today's aggregate if it has not been stored yet."""
        now = now or datetime.now(timezone.utc)
        today = local_today(now)
        if await self.stores.analytics.get_daily(today.isoformat()) is None:
            await self.calculate_daily(today, now=now)

    async def summary(self, period: str = "day", now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        await self.ensure_today(now)
        daily = await self.stores.analytics.all_daily()
        return {
            "period": period,
            "generatedAt": now.isoformat(),
            "data": summarize_period(period, daily, local_today(now)),
        }

    async def violations(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        await self.ensure_today(now)
        daily = await self.stores.analytics.all_daily()
        return {
            "period": "day",
            "title": "Trailers Over 2 Hours",
            "description": "Count of docked trailers exceeding 2 hours dwell time (excludes >6h)",
            "generatedAt": now.isoformat(),
            "data": violation_series(daily, local_today(now)),
        }

    async def current_violations(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Real-time view; never touches the analytics store."""
        now = now or datetime.now(timezone.utc)
        state = await self.stores.state.load()
        trailers = current_violations(state, now)
        return {
            "count": len(trailers),
            "generatedAt": now.isoformat(),
            "trailers": trailers,
        }
