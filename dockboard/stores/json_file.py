"""
Flat JSON file stores.

Layout inside DATA_DIR:
    state.json      FacilityState document
    history.json    {"entries": [...]} newest first
    analytics.json  {"snapshots": [], "dailyStats": {...}, "weeklyStats": {}, "monthlyStats": {}}

Writes go to a temporary file in the same directory and are renamed over
the target, so a crash never leaves a half-written document.
"""
import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from dockboard.core.exceptions import InternalError
from dockboard.models.analytics import AnalyticsDocument, DailyStat
from dockboard.models.facility import FacilityState
from dockboard.models.history import HistoryEntry
from dockboard.stores.base import AnalyticsStore, HistoryStore, StateStore, validate_document

logger = logging.getLogger(__name__)

STATE_FILE = "state.json"
HISTORY_FILE = "history.json"
ANALYTICS_FILE = "analytics.json"


class JsonDocumentFile:
    """One JSON document on disk with atomic replace-on-write."""

    def __init__(self, path: Path, default: Callable[[], Any]):
        self.path = Path(path)
        self._default = default
        self._lock = asyncio.Lock()

    def _read(self) -> Any:
        if not self.path.exists():
            return self._default()
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read {self.path}: {e}")
            raise InternalError(
                f"Could not read {self.path.name}",
                details={"path": str(self.path), "reason": str(e)},
            )

    def _write(self, document: Any) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(document, fh, indent=2)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error(f"Failed to write {self.path}: {e}")
            raise InternalError(
                f"Could not write {self.path.name}",
                details={"path": str(self.path), "reason": str(e)},
            )

    async def read(self) -> Any:
        async with self._lock:
            return await asyncio.to_thread(self._read)

    async def write(self, document: Any) -> None:
        async with self._lock:
            await asyncio.to_thread(self._write, document)


class JsonStateStore(StateStore):

    def __init__(self, data_dir: str):
        self.file = JsonDocumentFile(Path(data_dir) / STATE_FILE, default=dict)

    async def load(self) -> FacilityState:
        return validate_document(FacilityState, await self.file.read(), self.file.path.name)

    async def save(self, state: FacilityState) -> None:
        await self.file.write(state.to_document())


class JsonHistoryStore(HistoryStore):

    def __init__(self, data_dir: str, limit: int = 1000):
        super().__init__(limit)
        self.file = JsonDocumentFile(Path(data_dir) / HISTORY_FILE, default=lambda: {"entries": []})

    async def _raw_entries(self) -> List[dict]:
        document = await self.file.read()
        return list(document.get("entries") or [])

    async def append_many(self, entries: Sequence[HistoryEntry]) -> None:
        if not entries:
            return
        raw = await self._raw_entries()
        fresh = [entry.to_document() for entry in reversed(entries)]
        await self.file.write({"entries": (fresh + raw)[:self.limit]})

    async def entries(self) -> List[HistoryEntry]:
        return [validate_document(HistoryEntry, doc, self.file.path.name) for doc in await self._raw_entries()]

    async def clear(self) -> None:
        await self.file.write({"entries": []})


class JsonAnalyticsStore(AnalyticsStore):

    def __init__(self, data_dir: str):
        self.file = JsonDocumentFile(
            Path(data_dir) / ANALYTICS_FILE,
            default=lambda: AnalyticsDocument().to_document(),
        )

    async def _load(self) -> AnalyticsDocument:
        return validate_document(AnalyticsDocument, await self.file.read(), self.file.path.name)

    async def get_daily(self, day: str) -> Optional[DailyStat]:
        return (await self._load()).daily_stats.get(day)

    async def set_daily(self, day: str, stat: DailyStat) -> None:
        document = await self._load()
        document.daily_stats[day] = stat
        await self.file.write(document.to_document())

    async def all_daily(self) -> Dict[str, DailyStat]:
        return dict((await self._load()).daily_stats)

    async def remove_days(self, days: List[str]) -> int:
        document = await self._load()
        removed = [day for day in days if document.daily_stats.pop(day, None) is not None]
        if removed:
            await self.file.write(document.to_document())
        return len(removed)

    async def clear(self) -> None:
        await self.file.write(AnalyticsDocument().to_document())
