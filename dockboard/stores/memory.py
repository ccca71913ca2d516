"""
In-memory stores for development and tests.

Documents are copied on the way in and out so callers never share mutable
state with the store, the same as the file and SQL backends.
"""
import asyncio
from collections import deque
from typing import Deque, Dict, List, Optional, Sequence

from dockboard.models.analytics import DailyStat
from dockboard.models.facility import FacilityState
from dockboard.models.history import HistoryEntry
from dockboard.stores.base import AnalyticsStore, HistoryStore, StateStore, validate_document


class InMemoryStateStore(StateStore):

    def __init__(self, state: Optional[FacilityState] = None):
        self._document = state.to_document() if state is not None else None

    async def load(self) -> FacilityState:
        if self._document is None:
            return FacilityState()
        return validate_document(FacilityState, self._document, "memory state")

    async def save(self, state: FacilityState) -> None:
        self._document = state.to_document()


class InMemoryHistoryStore(HistoryStore):
    """Ring buffer of history entries; the left end is the newest."""

    def __init__(self, limit: int = 1000):
        super().__init__(limit)
        self._entries: Deque[dict] = deque(maxlen=limit)
        self._lock = asyncio.Lock()

    async def append_many(self, entries: Sequence[HistoryEntry]) -> None:
        async with self._lock:
            for entry in entries:
                self._entries.appendleft(entry.to_document())

    async def entries(self) -> List[HistoryEntry]:
        async with self._lock:
            return [validate_document(HistoryEntry, doc, "memory history") for doc in self._entries]

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()


class InMemoryAnalyticsStore(AnalyticsStore):

    def __init__(self):
        self._daily: Dict[str, dict] = {}

    async def get_daily(self, day: str) -> Optional[DailyStat]:
        doc = self._daily.get(day)
        return validate_document(DailyStat, doc, "memory analytics") if doc is not None else None

    async def set_daily(self, day: str, stat: DailyStat) -> None:
        self._daily[day] = stat.to_document()

    async def all_daily(self) -> Dict[str, DailyStat]:
        return {day: validate_document(DailyStat, doc, "memory analytics") for day, doc in self._daily.items()}

    async def remove_days(self, days: List[str]) -> int:
        removed = 0
        for day in days:
            if self._daily.pop(day, None) is not None:
                removed += 1
        return removed

    async def clear(self) -> None:
        self._daily.clear()
