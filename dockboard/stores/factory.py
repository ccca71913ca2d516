"""
Store selection.

Usage:
    stores = await get_stores()
    state = await stores.state.load()
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from dockboard.config import settings
from dockboard.stores.base import AnalyticsStore, HistoryStore, StateStore

logger = logging.getLogger(__name__)


@dataclass
class Stores:
    """The three persistence seams used by the dock board."""
    state: StateStore
    history: HistoryStore
    analytics: AnalyticsStore
    # Serialises every load-mutate-save cycle
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


_stores: Optional[Stores] = None


async def build_stores(backend: Optional[str] = None) -> Stores:
    """Create stores for the configured (or given) backend."""
    backend = (backend or settings.STORAGE_BACKEND).lower()

    if backend == "json":
        from dockboard.stores.json_file import JsonAnalyticsStore, JsonHistoryStore, JsonStateStore

        stores = Stores(
            state=JsonStateStore(settings.DATA_DIR),
            history=JsonHistoryStore(settings.DATA_DIR, limit=settings.HISTORY_LIMIT),
            analytics=JsonAnalyticsStore(settings.DATA_DIR),
        )
    elif backend == "sql":
        from dockboard.database import get_engine, get_session_factory, init_db
        from dockboard.stores.sql import SqlAnalyticsStore, SqlHistoryStore, SqlStateStore

        await init_db(get_engine())
        factory = get_session_factory()
        stores = Stores(
            state=SqlStateStore(factory),
            history=SqlHistoryStore(factory, limit=settings.HISTORY_LIMIT),
            analytics=SqlAnalyticsStore(factory),
        )
    elif backend == "memory":
        from dockboard.stores.memory import InMemoryAnalyticsStore, InMemoryHistoryStore, InMemoryStateStore

        stores = Stores(
            state=InMemoryStateStore(),
            history=InMemoryHistoryStore(limit=settings.HISTORY_LIMIT),
            analytics=InMemoryAnalyticsStore(),
        )
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    logger.info(f"Stores initialized with {backend} backend")
    return stores


async def get_stores() -> Stores:
    """Get or create the process-wide stores."""
    global _stores
    if _stores is None:
        _stores = await build_stores()
    return _stores


def set_stores(stores: Optional[Stores]) -> None:
    """Install (or with None, forget) the process-wide stores."""
    global _stores
    _stores = stores
