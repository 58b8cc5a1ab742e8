"""
Read-only reporting API over the order store.

Dashboards and operators poll these; nothing here writes. Storage failures
come back as a JSON error body, never as a stack trace.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from shared.results import Failure

from .dependencies import get_order_store
from .repository import OrderStore
from .schemas import OrderEnvelope, OrderListResponse, OrderStats, OrderSummary
from .service import OrderService

router = APIRouter()
public_router = APIRouter()  # For any public endpoints (e.g. health check)


def _storage_error(failure: Failure) -> JSONResponse:
    return JSONResponse(status_code=500, content={"success": False, "error": failure.message})


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "order", "status": "running"}


@router.get("/", response_model=OrderListResponse)
async def list_orders(
    limit: int = Query(default=50, ge=1, le=1000),
    status: Optional[str] = Query(default=None),
    store_id: Optional[str] = Query(default=None),
    store: OrderStore = Depends(get_order_store),
):
    orders = await OrderService.list_orders(store, limit=limit, status=status, store_id=store_id)
    if isinstance(orders, Failure):
        return _storage_error(orders)
    return OrderListResponse(count=len(orders), limit=limit, orders=orders)


@router.get("/stats", response_model=OrderStats)
async def order_stats(store: OrderStore = Depends(get_order_store)):
    stats = await OrderService.stats(store)
    if isinstance(stats, Failure):
        return _storage_error(stats)
    return stats


@router.get("/summary", response_model=OrderSummary)
async def order_summary(store: OrderStore = Depends(get_order_store)):
    summary = await OrderService.summary(store)
    if isinstance(summary, Failure):
        return _storage_error(summary)
    return summary


@router.get("/recent", response_model=OrderListResponse)
@router.get("/recent/{minutes}", response_model=OrderListResponse)
async def recent_orders(minutes: int = 60, store: OrderStore = Depends(get_order_store)):
    if minutes < 1:
        return JSONResponse(status_code=400, content={"success": False, "error": "minutes must be positive"})
    orders = await OrderService.list_recent(store, minutes)
    if isinstance(orders, Failure):
        return _storage_error(orders)
    return OrderListResponse(count=len(orders), minutes=minutes, orders=orders)


@router.get("/status/{status}", response_model=OrderListResponse)
async def orders_by_status(status: str, store: OrderStore = Depends(get_order_store)):
    orders = await OrderService.list_by_status(store, status)
    if isinstance(orders, Failure):
        return _storage_error(orders)
    return OrderListResponse(count=len(orders), status=status, orders=orders)


@router.get("/{external_order_id}", response_model=OrderEnvelope)
async def get_order(external_order_id: str, store: OrderStore = Depends(get_order_store)):
    order = await OrderService.get_order(store, external_order_id)
    if isinstance(order, Failure):
        return _storage_error(order)
    if order is None:
        return JSONResponse(status_code=404, content={"success": False, "error": "Order not found"})
    return OrderEnvelope(order=order)
