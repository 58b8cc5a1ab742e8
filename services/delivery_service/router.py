from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from services.order_service.dependencies import get_order_store
from services.order_service.repository import OrderStore
from shared.results import Failure, FailureKind

from .client import DriveClient
from .dependencies import get_drive_client
from .schemas import CancelRequest, DeliveryStatusResponse

router = APIRouter()
public_router = APIRouter()  # For any public endpoints (e.g. health check)

_FAILURE_STATUS = {
    FailureKind.NOT_FOUND: 404,
    FailureKind.INVALID_REQUEST: 400,
    FailureKind.STORAGE: 500,
}


def _failure_response(failure: Failure) -> JSONResponse:
    content = {"success": False, "error": failure.message}
    if failure.status_code is not None:
        content["partner_status_code"] = failure.status_code
    return JSONResponse(status_code=_FAILURE_STATUS.get(failure.kind, 502), content=content)


def _not_configured() -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Delivery partner not configured"},
    )


@public_router.get("/health", include_in_schema=False)
async def health_check(client: Optional[DriveClient] = Depends(get_drive_client)):
    return {
        "service": "delivery",
        "status": "running",
        "configured": client is not None,
        "credentials_valid": client.verify_credentials() if client else False,
    }


async def _partner_key(store: OrderStore, external_order_id: str) -> str:
    # Prefer the partner's own delivery id when this order was dispatched
    order = await store.get_by_external_id(external_order_id)
    if isinstance(order, Failure) or order is None:
        return external_order_id
    return order.dispatch.partner_delivery_id or external_order_id


@router.get("/{external_order_id}/status", response_model=DeliveryStatusResponse)
async def delivery_status(
    external_order_id: str,
    client: Optional[DriveClient] = Depends(get_drive_client),
    store: OrderStore = Depends(get_order_store),
):
    if client is None:
        return _not_configured()

    key = await _partner_key(store, external_order_id)
    result = await client.get_delivery_status(key)
    if isinstance(result, Failure):
        return _failure_response(result)

    return DeliveryStatusResponse(
        external_order_id=external_order_id,
        partner_delivery_id=result.partner_delivery_id,
        external_delivery_id=result.external_delivery_id,
        status=result.status,
        tracking_url=result.tracking_url,
        raw=result.raw,
    )


@router.post("/{external_order_id}/cancel", response_model=DeliveryStatusResponse)
async def cancel_delivery(
    external_order_id: str,
    payload: Optional[CancelRequest] = None,
    client: Optional[DriveClient] = Depends(get_drive_client),
    store: OrderStore = Depends(get_order_store),
):
    if client is None:
        return _not_configured()

    key = await _partner_key(store, external_order_id)
    result = await client.cancel_delivery(key, reason=payload.reason if payload else None)
    if isinstance(result, Failure):
        return _failure_response(result)

    return DeliveryStatusResponse(
        external_order_id=external_order_id,
        partner_delivery_id=result.partner_delivery_id,
        external_delivery_id=result.external_delivery_id,
        status=result.status,
        tracking_url=result.tracking_url,
        raw=result.raw,
    )
