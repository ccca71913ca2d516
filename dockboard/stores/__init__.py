# Persistence module
from dockboard.stores.base import AnalyticsStore, HistoryStore, StateStore
from dockboard.stores.factory import Stores, build_stores, get_stores, set_stores

__all__ = [
    "AnalyticsStore",
    "HistoryStore",
    "StateStore",
    "Stores",
    "build_stores",
    "get_stores",
    "set_stores",
]
