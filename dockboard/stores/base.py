"""
Persistence interfaces for the dock board.

Three whole-document seams:
1. StateStore      - the FacilityState snapshot (load / save)
2. HistoryStore    - newest-first, capped event log
3. AnalyticsStore  - daily dwell aggregates keyed by ISO date

There are no transactions; callers read-modify-write whole documents.
"""
import logging
from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from dockboard.core.clock import local_today
from dockboard.core.exceptions import InternalError
from dockboard.models.analytics import DailyStat
from dockboard.models.facility import FacilityState
from dockboard.models.history import HistoryEntry, HistoryPage, HistoryQuery
from dockboard.services.history_service import query_entries

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def validate_document(model: Type[M], document: Any, source: str) -> M:
    """Validate a stored document; a malformed one is an InternalError."""
    try:
        return model.model_validate(document)
    except ValidationError as e:
        logger.error(f"Invalid document in {source}: {e}")
        raise InternalError(f"{source} is not a valid document", details={"source": source})


class StateStore(ABC):
    """Abstract facility snapshot store."""

    @abstractmethod
    async def load(self) -> FacilityState:
        """Load the current snapshot. An empty facility when nothing is stored."""
        pass

    @abstractmethod
    async def save(self, state: FacilityState) -> None:
        """Replace the stored snapshot."""
        pass


class HistoryStore(ABC):
    """Abstract bounded history log."""

    def __init__(self, limit: int = 1000):
        self.limit = limit

    @abstractmethod
    async def append_many(self, entries: Sequence[HistoryEntry]) -> None:
        """
        Prepend entries, given oldest first, in one write.
        The log is truncated to the newest `limit` entries.
        """
        pass

    @abstractmethod
    async def entries(self) -> List[HistoryEntry]:
        """All retained entries, newest first."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass

    async def append(self, entry: HistoryEntry) -> HistoryEntry:
        await self.append_many([entry])
        return entry

    async def query(self, query: HistoryQuery) -> HistoryPage:
        """Filter by search text and date range, then paginate."""
        return query_entries(await self.entries(), query)


class AnalyticsStore(ABC):
    """Abstract store of daily dwell aggregates."""

    @abstractmethod
    async def get_daily(self, day: str) -> Optional[DailyStat]:
        pass

    @abstractmethod
    async def set_daily(self, day: str, stat: DailyStat) -> None:
        pass

    @abstractmethod
    async def all_daily(self) -> Dict[str, DailyStat]:
        pass

    @abstractmethod
    async def remove_days(self, days: List[str]) -> int:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass

    async def prune_older_than(self, days: int, today: Optional[date] = None) -> int:
        """Drop stored dates older than `days` before today. Returns the count removed."""
        cutoff = (today or local_today()) - timedelta(days=days)
        stale = [key for key in await self.all_daily() if _parse_day(key) < cutoff]
        if not stale:
            return 0
        return await self.remove_days(stale)


def _parse_day(key: str) -> date:
    try:
        return date.fromisoformat(key)
    except ValueError:
        return date.min
