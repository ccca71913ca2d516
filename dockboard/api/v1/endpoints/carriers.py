"""
Carrier API Endpoints.
"""
from fastapi import APIRouter, Depends, status

from dockboard.api.deps import get_dock_board_service
from dockboard.schemas.dock_board import CarrierCreate, FavoriteUpdate
from dockboard.services.dock_board_service import DockBoardService

router = APIRouter()


@router.get("/carriers", summary="List Carriers")
async def list_carriers(service: DockBoardService = Depends(get_dock_board_service)):
    """Favorites first, then by usage."""
    return [c.to_document() for c in await service.get_carriers()]


@router.post("/carriers", status_code=status.HTTP_201_CREATED, summary="Create Carrier")
async def create_carrier(
    data: CarrierCreate,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.create_carrier(data.name, mc_number=data.mc_number, favorite=data.favorite)
    return result.to_dict()


@router.patch("/carriers/{carrier_id}/favorite", summary="Set Carrier Favorite")
async def set_carrier_favorite(
    carrier_id: str,
    data: FavoriteUpdate,
    service: DockBoardService = Depends(get_dock_board_service),
):
    carrier = await service.set_carrier_favorite(carrier_id, data.favorite)
    return carrier.to_document()


@router.post("/carriers/{carrier_id}/use", summary="Record Carrier Use")
async def record_carrier_use(
    carrier_id: str,
    service: DockBoardService = Depends(get_dock_board_service),
):
    carrier = await service.record_carrier_use(carrier_id)
    return carrier.to_document()


@router.delete("/carriers/{carrier_id}", summary="Delete Carrier")
async def delete_carrier(
    carrier_id: str,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.delete_carrier(carrier_id)
    return result.to_dict()
