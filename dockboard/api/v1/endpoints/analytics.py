"""
Dwell Analytics API Endpoints.

- Period summaries and violation series from the daily aggregates
- Real-time violations for docked trailers
- Door heatmap and placement patterns
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from dockboard.api.deps import get_dock_board_service
from dockboard.jobs.scheduler import get_job_status
from dockboard.services.dock_board_service import DockBoardService

router = APIRouter()


@router.get("/dwell", summary="Dwell Summary")
async def dwell_summary(
    period: str = Query("day", pattern="^(day|week|month)$"),
    service: DockBoardService = Depends(get_dock_board_service),
):
    return await service.dwell_summary(period)


@router.get("/violations", summary="Dwell Violations")
async def dwell_violations(service: DockBoardService = Depends(get_dock_board_service)):
    """Violation counts for the last 7 days."""
    return await service.dwell_violations()


@router.get("/current-violations", summary="Current Violations")
async def current_violations(service: DockBoardService = Depends(get_dock_board_service)):
    return await service.current_violations()


@router.post("/calculate", summary="Recalculate Daily Dwell")
async def calculate_daily(
    day: Optional[str] = Query(None, alias="date"),
    service: DockBoardService = Depends(get_dock_board_service),
):
    """Recompute one day's aggregate; defaults to today."""
    stat = await service.calculate_daily(day)
    return stat.to_document()


@router.get("/heatmap", summary="Door Heatmap")
async def heatmap(
    carrier: Optional[str] = None,
    customer: Optional[str] = None,
    service: DockBoardService = Depends(get_dock_board_service),
):
    return await service.heatmap(carrier=carrier, customer=customer)


@router.get("/position-patterns", summary="Door Position Patterns")
async def position_patterns(
    carrier: Optional[str] = None,
    customer: Optional[str] = None,
    date_from: Optional[date] = Query(None, alias="dateFrom"),
    date_to: Optional[date] = Query(None, alias="dateTo"),
    service: DockBoardService = Depends(get_dock_board_service),
):
    return await service.position_patterns(
        carrier=carrier,
        customer=customer,
        date_from=date_from,
        date_to=date_to,
    )


@router.delete("", summary="Clear Analytics")
async def clear_analytics(service: DockBoardService = Depends(get_dock_board_service)):
    await service.clear_analytics()
    return {"success": True}


@router.get("/jobs", summary="Scheduled Jobs")
async def scheduled_jobs():
    return get_job_status()
