"""
Dwell Analytics Jobs

Background job that rebuilds today's dwell aggregate from the history log
and prunes aggregates past the retention window.
"""

import logging
from typing import Any, Dict

from dockboard.services.dwell_service import DwellService
from dockboard.stores.factory import get_stores

logger = logging.getLogger(__name__)


async def calculate_daily_dwell_job() -> Dict[str, Any]:
    """Recalculate today's daily dwell stat."""
    stores = await get_stores()
    stat = await DwellService(stores).calculate_daily()
    return {
        "date": stat.date,
        "count": stat.count,
        "violations": stat.violations,
    }
