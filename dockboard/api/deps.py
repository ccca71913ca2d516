import logging

from dockboard.services.dock_board_service import DockBoardService
from dockboard.stores.factory import get_stores


logger = logging.getLogger(__name__)


async def get_dock_board_service() -> DockBoardService:
    """Dependency returning a service bound to the process-wide stores."""
    stores = await get_stores()
    return DockBoardService(stores)
