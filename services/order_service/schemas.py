from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

DELIVERY_ORDER_TYPE = "delivery"
UNKNOWN_CUSTOMER = "Unknown"

class OrderItem(BaseModel):
    name: str
    quantity: int = 1
    unit_price: Decimal = Decimal("0")

class DispatchState(BaseModel):
    sent: bool = False
    partner_delivery_id: Optional[str] = None
    sent_at: Optional[datetime] = None
    tracking_url: Optional[str] = None

class Order(BaseModel):
    """Canonical order record, built from whatever shape the platform sent."""

    external_order_id: str
    store_id: str = ""
    customer_name: str = UNKNOWN_CUSTOMER
    customer_phone: str = ""
    customer_email: str = ""
    delivery_address: str = ""
    total_price: Decimal = Decimal("0")
    currency: str = "USD"
    status: str = "unknown"
    order_type: str = "unknown"
    items: List[OrderItem] = []
    raw_payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
    fetched_at: datetime
    dispatch: DispatchState = Field(default_factory=DispatchState)

    @property
    def is_delivery(self) -> bool:
        return (self.order_type or "").strip().lower() == DELIVERY_ORDER_TYPE

    @property
    def subtotal(self) -> Decimal:
        return sum((item.unit_price * item.quantity for item in self.items), Decimal("0"))

class StoredOrder(Order):
    id: Optional[int] = None

class OrderEnvelope(BaseModel):
    success: bool = True
    order: StoredOrder

class OrderListResponse(BaseModel):
    success: bool = True
    count: int
    orders: List[StoredOrder]
    limit: Optional[int] = None
    minutes: Optional[int] = None
    status: Optional[str] = None

class OrderStats(BaseModel):
    success: bool = True
    total_orders: int
    recent_orders_1h: int
    recent_orders_24h: int
    dispatched_orders: int
    status_breakdown: Dict[str, int]
    database_backend: str
    server_time: datetime

class OrderSummary(BaseModel):
    success: bool = True
    total_orders: int
    recent_1h: int
    recent_24h: int
    total_revenue: Decimal
    status_counts: Dict[str, int]
    timestamp: datetime
