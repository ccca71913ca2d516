"""
Trailer API Endpoints.

- Trailer records (create, update, delete, dwell reset)
- Shipped archive
"""
from fastapi import APIRouter, Depends, status

from dockboard.api.deps import get_dock_board_service
from dockboard.schemas.dock_board import TrailerCreate, TrailerRef, TrailerUpdate
from dockboard.services.dock_board_service import DockBoardService

router = APIRouter()


# ============================================================================
# TRAILERS
# ============================================================================

@router.post("/trailers", status_code=status.HTTP_201_CREATED, summary="Create Trailer")
async def create_trailer(
    data: TrailerCreate,
    service: DockBoardService = Depends(get_dock_board_service),
):
    """Create a trailer in the unassigned yard."""
    result = await service.create_trailer(data.to_fields())
    return result.to_dict()


@router.put("/trailers/{trailer_id}", summary="Update Trailer")
async def update_trailer(
    trailer_id: str,
    data: TrailerUpdate,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.update_trailer(trailer_id, data.to_updates())
    return result.to_dict()


@router.delete("/trailers/{trailer_id}", summary="Delete Trailer")
async def delete_trailer(
    trailer_id: str,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.delete_trailer(trailer_id)
    return result.to_dict()


@router.post("/trailers/{trailer_id}/reset-dwell", summary="Reset Dwell")
async def reset_dwell(
    trailer_id: str,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.reset_dwell(trailer_id)
    return result.to_dict()


# ============================================================================
# SHIPPED
# ============================================================================

@router.get("/shipped", summary="List Shipped Trailers")
async def list_shipped(service: DockBoardService = Depends(get_dock_board_service)):
    return [t.to_document() for t in await service.get_shipped()]


@router.post("/shipped", summary="Ship Trailer")
async def ship_trailer(
    data: TrailerRef,
    service: DockBoardService = Depends(get_dock_board_service),
):
    """Archive a trailer from any active location."""
    result = await service.ship(data.trailer_id)
    return result.to_dict()


@router.delete("/shipped/{trailer_id}", summary="Delete Shipped Record")
async def delete_shipped(
    trailer_id: str,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.delete_shipped(trailer_id)
    return result.to_dict()
