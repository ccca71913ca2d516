"""
History Recorder

Builds history entries for facility transitions and answers history
queries. Every transition produces exactly one primary entry; evictions
produce their own MOVED_TO_YARD entry and auto-assign cascades are folded
into the entry that triggered them.

Usage:
    recorder = HistoryRecorder()
    recorder.record(HistoryAction.MOVED_TO_DOOR, trailer=trailer, door_number=5)
    await history_store.append_many(recorder.entries)
"""
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Iterable, List, Optional

from pydantic.alias_generators import to_camel

from dockboard.core.clock import day_bounds, facility_tz
from dockboard.models.facility import Trailer
from dockboard.models.history import (
    HistoryAction,
    HistoryEntry,
    HistoryPage,
    HistoryQuery,
)


_ONE_SECOND = timedelta(seconds=1)


class HistoryRecorder:
    """Collects the entries one transition emits, in chronological order."""

    def __init__(self, clock: Optional[datetime] = None):
        self._clock = clock
        self.entries: List[HistoryEntry] = []

    def record(
        self,
        action: HistoryAction,
        trailer: Optional[Trailer] = None,
        **details: Any,
    ) -> HistoryEntry:
        """
        Record one entry.

        When a trailer is given its id, number and carrier are filled in
        unless the caller passes them explicitly. Keyword details use
        snake_case and are stored camelCase.
        """
        fields = {}
        if trailer is not None:
            fields["trailerId"] = trailer.id
            fields["trailerNumber"] = trailer.number
            fields["carrier"] = trailer.carrier
        for key, value in details.items():
            if value is None:
                continue
            fields[to_camel(key)] = value.value if isinstance(value, Enum) else value

        entry = HistoryEntry(action=action.value, **fields)
        if self._clock is not None:
            entry.timestamp = self._clock
        self.entries.append(entry)
        return entry

    @property
    def primary(self) -> Optional[HistoryEntry]:
        """The most recently recorded entry."""
        return self.entries[-1] if self.entries else None


def match_entries(entries: Iterable[HistoryEntry], query: HistoryQuery) -> List[HistoryEntry]:
    """Apply search, trailer and whole-day date filters, keeping order."""
    tz = facility_tz()
    start = day_bounds(query.date_from, tz)[0] if query.date_from else None
    end = day_bounds(query.date_to, tz)[1] if query.date_to else None
    needle = query.search.strip().lower() if query.search else None

    matched = []
    for entry in entries:
        if query.trailer_id and entry.trailer_id != query.trailer_id:
            continue
        if start is not None and entry.timestamp < start:
            continue
        # day_bounds ends at 23:59:59; include the whole final second
        if end is not None and entry.timestamp >= end.replace(microsecond=0) + _ONE_SECOND:
            continue
        if needle and needle not in entry.search_text():
            continue
        matched.append(entry)
    return matched


def paginate(entries: List[HistoryEntry], query: HistoryQuery) -> HistoryPage:
    """Slice matched entries into a page."""
    offset = max(query.offset, 0)
    limit = max(query.limit, 0)
    return HistoryPage(
        entries=entries[offset:offset + limit],
        total=len(entries),
        offset=offset,
        limit=limit,
    )


def query_entries(entries: Iterable[HistoryEntry], query: HistoryQuery) -> HistoryPage:
    return paginate(match_entries(entries, query), query)
