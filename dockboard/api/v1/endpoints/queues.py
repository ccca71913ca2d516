"""
Staging and Queue API Endpoints.

- Staging: the single check-in spot
- Queue: FCFS lines per target door
- Appointment queue: ordered list awaiting check-in
"""
from fastapi import APIRouter, Depends, status

from dockboard.api.deps import get_dock_board_service
from dockboard.schemas.dock_board import (
    AssignNextRequest,
    QueueRequest,
    ReassignRequest,
    ReorderRequest,
    StagingCreate,
    TrailerRef,
)
from dockboard.services.dock_board_service import DockBoardService

router = APIRouter()


# ============================================================================
# STAGING
# ============================================================================

@router.get("/staging", summary="Get Staging")
async def get_staging(service: DockBoardService = Depends(get_dock_board_service)):
    staging = await service.get_staging()
    return {"staging": staging.to_document() if staging else None}


@router.post("/staging", status_code=status.HTTP_201_CREATED, summary="Create Staged Trailer")
async def create_staged_trailer(
    data: StagingCreate,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.create_trailer(data.to_fields(), staged=True)
    return result.to_dict()


@router.post("/staging/check-in", summary="Check In To Staging")
async def check_in(
    data: TrailerRef,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.check_in(data.trailer_id)
    return result.to_dict()


# ============================================================================
# FCFS QUEUE
# ============================================================================

@router.get("/queue", summary="List Queue")
async def list_queue(service: DockBoardService = Depends(get_dock_board_service)):
    return [t.to_document() for t in await service.get_queue()]


@router.post("/queue", summary="Queue Trailer For Door")
async def enqueue(
    data: QueueRequest,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.enqueue(data.trailer_id, data.target_door_id)
    return result.to_dict()


@router.post("/queue/reassign", summary="Reassign Queued Trailer")
async def reassign(
    data: ReassignRequest,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.reassign(data.trailer_id, data.new_door_id)
    return result.to_dict()


@router.post("/queue/cancel", summary="Cancel Queued Trailer")
async def cancel_queue(
    data: TrailerRef,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.cancel_queue(data.trailer_id)
    return result.to_dict()


@router.post("/queue/assign-next", summary="Assign Next Queued Trailer")
async def assign_next(
    data: AssignNextRequest,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.assign_next(data.door_id)
    return result.to_dict()


# ============================================================================
# APPOINTMENT QUEUE
# ============================================================================

@router.get("/appointment-queue", summary="List Appointment Queue")
async def list_appointment_queue(service: DockBoardService = Depends(get_dock_board_service)):
    return [t.to_document() for t in await service.get_appointment_queue()]


@router.post("/appointment-queue", summary="Send Staged Trailer To Appointment Queue")
async def send_to_appointment_queue(
    data: TrailerRef,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.send_to_appointment_queue(data.trailer_id)
    return result.to_dict()


@router.post("/appointment-queue/cancel", summary="Cancel Appointment")
async def cancel_appointment(
    data: TrailerRef,
    service: DockBoardService = Depends(get_dock_board_service),
):
    result = await service.cancel_appointment(data.trailer_id)
    return result.to_dict()


@router.put("/appointment-queue/reorder", summary="Reorder Appointment Queue")
async def reorder_appointment_queue(
    data: ReorderRequest,
    service: DockBoardService = Depends(get_dock_board_service),
):
    ordered = await service.reorder_appointment_queue(data.ids)
    return [t.to_document() for t in ordered]
