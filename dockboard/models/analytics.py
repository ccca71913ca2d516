"""
Analytics documents: the daily dwell aggregates and their container.
"""
from typing import Any, Dict, List, Optional, Union

from pydantic import Field

from dockboard.models.base import DocumentModel, Timestamp, utc_now


class Violator(DocumentModel):
    """A door occupancy of two hours or more."""
    trailer_id: str
    carrier: Optional[str] = None
    door_number: Optional[Union[int, str]] = None
    dwell_hours: float


class DailyStat(DocumentModel):
    """Dwell aggregate for one facility-local calendar day."""
    date: str
    avg_dwell: float = 0
    max_dwell: float = 0
    count: int = 0
    violations: int = 0
    violators: List[Violator] = Field(default_factory=list)
    calculated_at: Timestamp = Field(default_factory=utc_now)


class AnalyticsDocument(DocumentModel):
    """The analytics document, keyed by ISO date."""
    snapshots: List[Any] = Field(default_factory=list)
    daily_stats: Dict[str, DailyStat] = Field(default_factory=dict)
    weekly_stats: Dict[str, Any] = Field(default_factory=dict)
    monthly_stats: Dict[str, Any] = Field(default_factory=dict)
