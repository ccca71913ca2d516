"""
Trailer Move API Endpoints.

Every move frees the source door or slot and may auto-assign the oldest
queued trailer into a freed door.
"""
from fastapi import APIRouter, Depends

from dockboard.api.deps import get_dock_board_service
from dockboard.core.exceptions import InvalidArgumentError
from dockboard.models.facility import TrailerLocation
from dockboard.schemas.dock_board import MoveToDoor, MoveToYard, MoveToYardSlot, TrailerRef
from dockboard.services.dock_board_service import DockBoardService

router = APIRouter()


@router.post("/move-to-door", summary="Move Trailer To Door")
async def move_to_door(
    data: MoveToDoor,
    service: DockBoardService = Depends(get_dock_board_service),
):
    """Dock a trailer; an occupant is evicted to the unassigned yard."""
    if data.door_ref is None:
        raise InvalidArgumentError("doorId or doorNumber is required")
    result = await service.move_to_door(data.trailer_id, data.door_ref)
    return result.to_dict()


@router.post("/move-to-yard", summary="Move Trailer To Yard")
async def move_to_yard(
    data: MoveToYard,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.move_to_yard(data.trailer_id, data.from_location)
    return result.to_dict()


@router.post("/move-to-yard-slot", summary="Move Trailer To Yard Slot")
async def move_to_yard_slot(
    data: MoveToYardSlot,
    service: DockBoardService = Depends(get_dock_board_service),
):
    if data.slot_ref is None:
        raise InvalidArgumentError("slotId or slotNumber is required")
    result = await service.move_to_yard_slot(data.trailer_id, data.slot_ref)
    return result.to_dict()


@router.post("/move-from-yard-slot", summary="Move Trailer Out Of Yard Slot")
async def move_from_yard_slot(
    data: TrailerRef,
    service: DockBoardService = Depends(get_dock_board_service),
):
    """Release a yard slot into the unassigned yard."""
    result = await service.move_to_yard(data.trailer_id, TrailerLocation.YARD_SLOT)
    return result.to_dict()
