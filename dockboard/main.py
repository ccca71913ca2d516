from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from dockboard.config import settings
from dockboard.api.v1.router import api_router
from dockboard.core.exceptions import DockBoardError, InvalidArgumentError
from dockboard.jobs.scheduler import start_scheduler, shutdown_scheduler
from dockboard.stores.factory import get_stores

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Configure logging
    - Open the configured stores (creates SQL tables when needed)
    - Start background scheduler
    """
    # Startup
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await get_stores()

    if settings.SCHEDULER_ENABLED:
        start_scheduler()

    yield

    # Shutdown
    shutdown_scheduler()
    if settings.STORAGE_BACKEND == "sql":
        from dockboard.database import close_db
        await close_db()
    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "State", "description": "Facility snapshot, first-run setup and history"},
    {"name": "Trailers", "description": "Trailer records and the shipped archive"},
    {"name": "Moves", "description": "Door, yard and yard slot moves with auto-assignment"},
    {"name": "Staging & Queues", "description": "Staging spot, FCFS door queue and appointment queue"},
    {"name": "Carriers", "description": "Carrier list, favorites and usage"},
    {"name": "Doors & Yard Slots", "description": "Facility layout management"},
    {"name": "Analytics", "description": "Dwell time aggregates, violations and door patterns"},
]

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router, prefix="/api")


@app.exception_handler(DockBoardError)
async def dock_board_exception_handler(request: Request, exc: DockBoardError):
    """Map the error taxonomy to its HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    error = InvalidArgumentError(
        "Invalid request",
        details={"errors": [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
            for e in exc.errors()
        ]},
    )
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with store validation."""
    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "storage": settings.STORAGE_BACKEND,
            "state": "unknown",
        },
    }

    try:
        stores = await get_stores()
        await stores.state.load()
        health_status["checks"]["state"] = "ok"
    except DockBoardError as e:
        health_status["status"] = "degraded"
        health_status["checks"]["state"] = e.message

    return health_status
