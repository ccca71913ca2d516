"""
Facility State API Endpoints.

- Full facility snapshot
- First-run setup
- History log queries
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from dockboard.api.deps import get_dock_board_service
from dockboard.models.history import HistoryQuery
from dockboard.schemas.dock_board import SetupRequest
from dockboard.services.dock_board_service import DockBoardService

router = APIRouter()


@router.get("/state", summary="Facility State")
async def get_state(service: DockBoardService = Depends(get_dock_board_service)):
    """Doors, yard slots, trailers in every container and carriers."""
    state = await service.get_state()
    return state.to_document()


@router.get("/setup/status", summary="Setup Status")
async def get_setup_status(service: DockBoardService = Depends(get_dock_board_service)):
    return await service.setup_status()


@router.post("/setup", status_code=status.HTTP_201_CREATED, summary="Facility Setup")
async def setup_facility(
    data: SetupRequest,
    service: DockBoardService = Depends(get_dock_board_service),
):
    """Generate doors, dumpsters, ramps and yard slots on first run."""
    await service.setup_facility(**data.model_dump())
    state = await service.get_state()
    return {
        "success": True,
        "doors": len(state.doors),
        "yardSlots": len(state.yard_slots),
    }


@router.get("/history", summary="History Log")
async def get_history(
    search: Optional[str] = None,
    date_from: Optional[date] = Query(None, alias="dateFrom"),
    date_to: Optional[date] = Query(None, alias="dateTo"),
    trailer_id: Optional[str] = Query(None, alias="trailerId"),
    limit: int = Query(50, ge=0, le=1000),
    offset: int = Query(0, ge=0),
    service: DockBoardService = Depends(get_dock_board_service),
):
    """Newest-first history, filtered by text, whole days and trailer."""
    page = await service.query_history(HistoryQuery(
        search=search,
        date_from=date_from,
        date_to=date_to,
        trailer_id=trailer_id,
        limit=limit,
        offset=offset,
    ))
    return {
        "entries": [entry.to_document() for entry in page.entries],
        "total": page.total,
        "offset": page.offset,
        "limit": page.limit,
    }
