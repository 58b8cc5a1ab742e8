from typing import Optional

from fastapi import Depends

from services.delivery_service.client import DriveClient
from services.delivery_service.dependencies import get_drive_client
from services.order_service.dependencies import get_order_store
from services.order_service.repository import OrderStore

from .controller import DispatchController


def get_dispatch_controller(
    store: OrderStore = Depends(get_order_store),
    drive_client: Optional[DriveClient] = Depends(get_drive_client),
) -> DispatchController:
    return DispatchController(store, drive_client)
