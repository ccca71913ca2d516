"""
SQL stores on SQLAlchemy's asyncio engine.

State and analytics are rows in the documents table; history is a table
capped at the newest `limit` rows.
"""
import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from dockboard.core.exceptions import InternalError
from dockboard.database import get_db_session
from dockboard.models.analytics import AnalyticsDocument, DailyStat
from dockboard.models.document import HistoryRecord, StoredDocument
from dockboard.models.facility import FacilityState
from dockboard.models.history import HistoryEntry
from dockboard.stores.base import AnalyticsStore, HistoryStore, StateStore, validate_document

logger = logging.getLogger(__name__)

STATE_DOCUMENT = "state"
ANALYTICS_DOCUMENT = "analytics"
HISTORY_TABLE = "history"


class _DocumentRow:
    """Get/put of one named row in the documents table."""

    def __init__(self, session_factory: async_sessionmaker, name: str):
        self.session_factory = session_factory
        self.name = name

    async def get(self) -> Optional[dict]:
        try:
            async with get_db_session(self.session_factory) as session:
                row = await session.get(StoredDocument, self.name)
                return dict(row.body) if row is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to read document '{self.name}': {e}")
            raise InternalError(f"Could not read {self.name}", details={"reason": str(e)})

    async def put(self, body: dict) -> None:
        try:
            async with get_db_session(self.session_factory) as session:
                row = await session.get(StoredDocument, self.name)
                if row is None:
                    session.add(StoredDocument(name=self.name, body=body))
                else:
                    row.body = body
        except SQLAlchemyError as e:
            logger.error(f"Failed to write document '{self.name}': {e}")
            raise InternalError(f"Could not write {self.name}", details={"reason": str(e)})


class SqlStateStore(StateStore):

    def __init__(self, session_factory: async_sessionmaker):
        self._row = _DocumentRow(session_factory, STATE_DOCUMENT)

    async def load(self) -> FacilityState:
        body = await self._row.get()
        return validate_document(FacilityState, body, STATE_DOCUMENT) if body is not None else FacilityState()

    async def save(self, state: FacilityState) -> None:
        await self._row.put(state.to_document())


class SqlHistoryStore(HistoryStore):

    def __init__(self, session_factory: async_sessionmaker, limit: int = 1000):
        super().__init__(limit)
        self.session_factory = session_factory

    async def append_many(self, entries: Sequence[HistoryEntry]) -> None:
        if not entries:
            return
        try:
            async with get_db_session(self.session_factory) as session:
                for entry in entries:
                    session.add(HistoryRecord(
                        id=entry.id,
                        timestamp=entry.timestamp,
                        action=entry.action,
                        trailer_id=entry.trailer_id,
                        body=entry.to_document(),
                    ))
                await session.flush()

                # Evict everything older than the newest `limit` rows
                cutoff = await session.scalar(
                    select(HistoryRecord.seq)
                    .order_by(HistoryRecord.seq.desc())
                    .offset(self.limit)
                    .limit(1)
                )
                if cutoff is not None:
                    await session.execute(delete(HistoryRecord).where(HistoryRecord.seq <= cutoff))
        except SQLAlchemyError as e:
            logger.error(f"Failed to append {len(entries)} history entries: {e}")
            raise InternalError("Could not append history", details={"reason": str(e)})

    async def entries(self) -> List[HistoryEntry]:
        try:
            async with get_db_session(self.session_factory) as session:
                result = await session.scalars(
                    select(HistoryRecord.body).order_by(HistoryRecord.seq.desc())
                )
                rows = result.all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to read history: {e}")
            raise InternalError("Could not read history", details={"reason": str(e)})
        return [validate_document(HistoryEntry, body, HISTORY_TABLE) for body in rows]

    async def count(self) -> int:
        async with get_db_session(self.session_factory) as session:
            return await session.scalar(select(func.count()).select_from(HistoryRecord))

    async def clear(self) -> None:
        async with get_db_session(self.session_factory) as session:
            await session.execute(delete(HistoryRecord))


class SqlAnalyticsStore(AnalyticsStore):

    def __init__(self, session_factory: async_sessionmaker):
        self._row = _DocumentRow(session_factory, ANALYTICS_DOCUMENT)

    async def _load(self) -> AnalyticsDocument:
        body = await self._row.get()
        return validate_document(AnalyticsDocument, body, ANALYTICS_DOCUMENT) if body is not None else AnalyticsDocument()

    async def get_daily(self, day: str) -> Optional[DailyStat]:
        return (await self._load()).daily_stats.get(day)

    async def set_daily(self, day: str, stat: DailyStat) -> None:
        document = await self._load()
        document.daily_stats[day] = stat
        await self._row.put(document.to_document())

    async def all_daily(self) -> Dict[str, DailyStat]:
        return dict((await self._load()).daily_stats)

    async def remove_days(self, days: List[str]) -> int:
        document = await self._load()
        removed = [day for day in days if document.daily_stats.pop(day, None) is not None]
        if removed:
            await self._row.put(document.to_document())
        return len(removed)

    async def clear(self) -> None:
        await self._row.put(AnalyticsDocument().to_document())
