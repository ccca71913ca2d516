"""
Door and Yard Slot API Endpoints.
"""
from fastapi import APIRouter, Depends, status

from dockboard.api.deps import get_dock_board_service
from dockboard.schemas.dock_board import (
    DoorCreate,
    DoorUpdate,
    ReorderRequest,
    YardSlotCreate,
    YardSlotUpdate,
)
from dockboard.services.dock_board_service import DockBoardService

router = APIRouter()


# ============================================================================
# DOORS
# ============================================================================

@router.get("/doors", summary="List Doors")
async def list_doors(service: DockBoardService = Depends(get_dock_board_service)):
    return [d.to_document() for d in await service.get_doors()]


@router.post("/doors", status_code=status.HTTP_201_CREATED, summary="Create Door")
async def create_door(
    data: DoorCreate,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.create_door(
        data.number,
        door_type=data.type,
        label_text=data.label_text,
        in_service=data.in_service,
    )
    return result.to_dict()


@router.put("/doors/reorder", summary="Reorder Doors")
async def reorder_doors(
    data: ReorderRequest,
    service: DockBoardService = Depends(get_dock_board_service),
):
    ordered = await service.reorder_doors(data.ids)
    return [d.to_document() for d in ordered]


@router.put("/doors/{door_id}", summary="Update Door")
async def update_door(
    door_id: str,
    data: DoorUpdate,
    service: DockBoardService = Depends(get_dock_board_service),
):
    """Renumber, relabel, change type or take a door in or out of service."""
    result = await service.update_door(door_id, data.to_updates())
    return result.to_dict()


@router.delete("/doors/{door_id}", summary="Delete Door")
async def delete_door(
    door_id: str,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.delete_door(door_id)
    return result.to_dict()


# ============================================================================
# YARD SLOTS
# ============================================================================

@router.get("/yard-slots", summary="List Yard Slots")
async def list_yard_slots(service: DockBoardService = Depends(get_dock_board_service)):
    return [s.to_document() for s in await service.get_yard_slots()]


@router.post("/yard-slots", status_code=status.HTTP_201_CREATED, summary="Create Yard Slot")
async def create_yard_slot(
    data: YardSlotCreate,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.create_yard_slot(data.number)
    return result.to_dict()


@router.put("/yard-slots/reorder", summary="Reorder Yard Slots")
async def reorder_yard_slots(
    data: ReorderRequest,
    service: DockBoardService = Depends(get_dock_board_service),
):
    ordered = await service.reorder_yard_slots(data.ids)
    return [s.to_document() for s in ordered]


@router.put("/yard-slots/{slot_id}", summary="Renumber Yard Slot")
async def update_yard_slot(
    slot_id: str,
    data: YardSlotUpdate,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.update_yard_slot(slot_id, data.number)
    return result.to_dict()


@router.delete("/yard-slots/{slot_id}", summary="Delete Yard Slot")
async def delete_yard_slot(
    slot_id: str,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.delete_yard_slot(slot_id)
    return result.to_dict()
