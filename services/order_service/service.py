from collections import Counter
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Union

from shared.results import Failure

from .repository import OrderStore
from .schemas import OrderStats, OrderSummary, StoredOrder

# Status breakdowns and store_id filters look at the most recent orders only
BREAKDOWN_WINDOW = 1000

class OrderService:
    @staticmethod
    async def get_order(store: OrderStore, external_order_id: str):
        return await store.get_by_external_id(external_order_id)

    @staticmethod
    async def list_orders(
        store: OrderStore,
        limit: int = 50,
        status: Optional[str] = None,
        store_id: Optional[str] = None,
    ) -> Union[List[StoredOrder], Failure]:
        if status:
            orders = await store.list_by_status(status)
        else:
            # store_id is filtered here, so read past the limit first
            orders = await store.list_all(BREAKDOWN_WINDOW if store_id else limit)
        if isinstance(orders, Failure):
            return orders

        if store_id:
            orders = [order for order in orders if order.store_id == store_id]
        return orders[:limit]

    @staticmethod
    async def list_recent(store: OrderStore, minutes: int):
        return await store.list_recent(minutes)

    @staticmethod
    async def list_by_status(store: OrderStore, status: str):
        return await store.list_by_status(status)

    @staticmethod
    async def stats(store: OrderStore) -> Union[OrderStats, Failure]:
        total = await store.count()
        recent_1h = await store.list_recent(60)
        recent_24h = await store.list_recent(1440)
        window = await store.list_all(BREAKDOWN_WINDOW)
        for result in (total, recent_1h, recent_24h, window):
            if isinstance(result, Failure):
                return result

        return OrderStats(
            total_orders=total,
            recent_orders_1h=len(recent_1h),
            recent_orders_24h=len(recent_24h),
            dispatched_orders=sum(1 for order in window if order.dispatch.sent),
            status_breakdown=dict(Counter(order.status for order in window)),
            database_backend=store.backend_name,
            server_time=datetime.now(timezone.utc),
        )

    @staticmethod
    async def summary(store: OrderStore) -> Union[OrderSummary, Failure]:
        total = await store.count()
        recent_1h = await store.list_recent(60)
        recent_24h = await store.list_recent(1440)
        window = await store.list_all(BREAKDOWN_WINDOW)
        for result in (total, recent_1h, recent_24h, window):
            if isinstance(result, Failure):
                return result

        return OrderSummary(
            total_orders=total,
            recent_1h=len(recent_1h),
            recent_24h=len(recent_24h),
            total_revenue=sum((order.total_price for order in window), Decimal("0")),
            status_counts=dict(Counter(order.status for order in window)),
            timestamp=datetime.now(timezone.utc),
        )
