# Schemas module
from dockboard.schemas.dock_board import (
    AssignNextRequest,
    CarrierCreate,
    DoorCreate,
    DoorUpdate,
    FavoriteUpdate,
    MoveToDoor,
    MoveToYard,
    MoveToYardSlot,
    QueueRequest,
    ReassignRequest,
    ReorderRequest,
    SetupRequest,
    StagingCreate,
    TrailerCreate,
    TrailerRef,
    TrailerUpdate,
    YardSlotCreate,
    YardSlotUpdate,
)

__all__ = [
    "AssignNextRequest",
    "CarrierCreate",
    "DoorCreate",
    "DoorUpdate",
    "FavoriteUpdate",
    "MoveToDoor",
    "MoveToYard",
    "MoveToYardSlot",
    "QueueRequest",
    "ReassignRequest",
    "ReorderRequest",
    "SetupRequest",
    "StagingCreate",
    "TrailerCreate",
    "TrailerRef",
    "TrailerUpdate",
    "YardSlotCreate",
    "YardSlotUpdate",
]
