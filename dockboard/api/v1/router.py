from fastapi import APIRouter

from dockboard.api.v1.endpoints import (
    state,
    trailers,
    moves,
    queues,
    carriers,
    doors,
    analytics,
)

api_router = APIRouter()

api_router.include_router(state.router, tags=["State"])
api_router.include_router(trailers.router, tags=["Trailers"])
api_router.include_router(moves.router, tags=["Moves"])
api_router.include_router(queues.router, tags=["Staging & Queues"])
api_router.include_router(carriers.router, tags=["Carriers"])
api_router.include_router(doors.router, tags=["Doors & Yard Slots"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])
