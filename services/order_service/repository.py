"""
Order Store: idempotent persistence of canonical orders, keyed by external order id.

Every operation is a coroutine regardless of backend, and storage errors come
back as a Failure value instead of an exception. The backend is picked once,
from StoreConfig, when the store is constructed.
"""
import abc
import copy
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Union

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from shared.config.database import create_engine_from_config, create_session_factory, create_tables
from shared.config.settings import StoreConfig
from shared.results import Failure, storage_failure

from .models import OrderRow
from .schemas import DispatchState, Order, OrderItem, StoredOrder

logger = structlog.get_logger(__name__)

StoreResult = Union[StoredOrder, Failure]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is written as UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class OrderStore(abc.ABC):
    backend_name = "abstract"

    async def initialize(self) -> None:
        """Prepare the backend (create tables). Safe to call more than once."""

    async def close(self) -> None:
        """Release backend resources."""

    @abc.abstractmethod
    async def upsert(self, order: Order) -> StoreResult:
        """Insert, or update every normalized field except created_at and dispatch state.

        Returns the record as read back from the store.
        """

    @abc.abstractmethod
    async def get_by_external_id(self, external_order_id: str) -> Union[StoredOrder, None, Failure]:
        ...

    @abc.abstractmethod
    async def mark_dispatched(
        self,
        external_order_id: str,
        partner_delivery_id: Optional[str],
        tracking_url: Optional[str] = None,
    ) -> Optional[Failure]:
        """Sets dispatch.sent. Repeating it keeps the first sent_at and any known ids."""

    @abc.abstractmethod
    async def list_by_status(self, status: str) -> Union[List[StoredOrder], Failure]:
        ...

    @abc.abstractmethod
    async def list_recent(self, minutes: int = 60) -> Union[List[StoredOrder], Failure]:
        ...

    @abc.abstractmethod
    async def list_all(self, limit: int = 50) -> Union[List[StoredOrder], Failure]:
        ...

    @abc.abstractmethod
    async def count(self) -> Union[int, Failure]:
        ...


# --- SQL backend ---

def _apply_order(row: OrderRow, order: Order) -> None:
    row.store_id = order.store_id
    row.customer_name = order.customer_name
    row.customer_phone = order.customer_phone
    row.customer_email = order.customer_email
    row.delivery_address = order.delivery_address
    row.total_price = order.total_price
    row.currency = order.currency
    row.status = order.status
    row.order_type = order.order_type
    row.items = [item.model_dump(mode="json") for item in order.items]
    row.raw_payload = order.raw_payload
    row.updated_at = order.updated_at
    row.fetched_at = order.fetched_at


def _to_stored(row: OrderRow) -> StoredOrder:
    return StoredOrder(
        id=row.id,
        external_order_id=row.external_order_id,
        store_id=row.store_id or "",
        customer_name=row.customer_name,
        customer_phone=row.customer_phone or "",
        customer_email=row.customer_email or "",
        delivery_address=row.delivery_address or "",
        total_price=row.total_price or 0,
        currency=row.currency or "USD",
        status=row.status or "unknown",
        order_type=row.order_type or "unknown",
        items=[OrderItem(**item) for item in (row.items or [])],
        raw_payload=row.raw_payload or {},
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
        fetched_at=_as_utc(row.fetched_at),
        dispatch=DispatchState(
            sent=bool(row.dispatch_sent),
            partner_delivery_id=row.partner_delivery_id,
            sent_at=_as_utc(row.dispatch_sent_at),
            tracking_url=row.tracking_url,
        ),
    )


class SqlOrderStore(OrderStore):
    """SQLAlchemy-backed store. Each operation takes its own pooled session."""

    backend_name = "sql"

    def __init__(self, engine: AsyncEngine, session_factory: Optional[async_sessionmaker] = None):
        self.engine = engine
        self._session_factory = session_factory or create_session_factory(engine)

    async def initialize(self) -> None:
        await create_tables(self.engine)

    async def close(self) -> None:
        await self.engine.dispose()

    async def upsert(self, order: Order) -> StoreResult:
        # A concurrent first delivery of the same id can win the insert; retry as an update
        for attempt in range(2):
            try:
                async with self._session_factory() as session:
                    result = await session.execute(
                        select(OrderRow).where(OrderRow.external_order_id == order.external_order_id)
                    )
                    row = result.scalars().first()
                    if row is None:
                        row = OrderRow(
                            external_order_id=order.external_order_id,
                            created_at=order.created_at,
                            dispatch_sent=False,
                        )
                        session.add(row)
                    _apply_order(row, order)
                    await session.commit()
                break
            except IntegrityError as e:
                if attempt == 0:
                    logger.warning("order_upsert_conflict_retry", order_id=order.external_order_id)
                    continue
                logger.error("order_upsert_failed", order_id=order.external_order_id, error=str(e))
                return storage_failure(f"Failed to store order {order.external_order_id}: {e}")
            except SQLAlchemyError as e:
                logger.error("order_upsert_failed", order_id=order.external_order_id, error=str(e))
                return storage_failure(f"Failed to store order {order.external_order_id}: {e}")

        stored = await self.get_by_external_id(order.external_order_id)
        if stored is None:
            return storage_failure(f"Order {order.external_order_id} missing after write")
        return stored

    async def get_by_external_id(self, external_order_id: str) -> Union[StoredOrder, None, Failure]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(OrderRow).where(OrderRow.external_order_id == external_order_id)
                )
                row = result.scalars().first()
                return _to_stored(row) if row else None
        except SQLAlchemyError as e:
            logger.error("order_read_failed", order_id=external_order_id, error=str(e))
            return storage_failure(f"Failed to read order {external_order_id}: {e}")

    async def mark_dispatched(
        self,
        external_order_id: str,
        partner_delivery_id: Optional[str],
        tracking_url: Optional[str] = None,
    ) -> Optional[Failure]:
        now = _utcnow()
        values = {
            "dispatch_sent": True,
            "dispatch_sent_at": func.coalesce(OrderRow.dispatch_sent_at, now),
            "updated_at": now,
        }
        if partner_delivery_id:
            values["partner_delivery_id"] = partner_delivery_id
        if tracking_url:
            values["tracking_url"] = tracking_url
        stmt = update(OrderRow).where(OrderRow.external_order_id == external_order_id).values(**values)
        try:
            async with self._session_factory() as session:
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("order_mark_dispatched_failed", order_id=external_order_id, error=str(e))
            return storage_failure(f"Failed to mark order {external_order_id} dispatched: {e}")
        return None

    async def _list(self, stmt, operation: str) -> Union[List[StoredOrder], Failure]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [_to_stored(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error("order_query_failed", operation=operation, error=str(e))
            return storage_failure(f"Failed to {operation}: {e}")

    async def list_by_status(self, status: str) -> Union[List[StoredOrder], Failure]:
        stmt = select(OrderRow).where(OrderRow.status == status).order_by(OrderRow.fetched_at.desc())
        return await self._list(stmt, "list orders by status")

    async def list_recent(self, minutes: int = 60) -> Union[List[StoredOrder], Failure]:
        since = _utcnow() - timedelta(minutes=minutes)
        stmt = select(OrderRow).where(OrderRow.fetched_at > since).order_by(OrderRow.fetched_at.desc())
        return await self._list(stmt, "list recent orders")

    async def list_all(self, limit: int = 50) -> Union[List[StoredOrder], Failure]:
        stmt = select(OrderRow).order_by(OrderRow.fetched_at.desc()).limit(limit)
        return await self._list(stmt, "list orders")

    async def count(self) -> Union[int, Failure]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(func.count()).select_from(OrderRow))
                return int(result.scalar_one())
        except SQLAlchemyError as e:
            logger.error("order_query_failed", operation="count orders", error=str(e))
            return storage_failure(f"Failed to count orders: {e}")


# --- In-memory backend ---

class InMemoryOrderStore(OrderStore):
    """Process-local store for development and tests. Not shared between workers."""

    backend_name = "memory"

    def __init__(self):
        self._orders: Dict[str, StoredOrder] = {}
        self._next_id = 1

    async def upsert(self, order: Order) -> StoreResult:
        existing = self._orders.get(order.external_order_id)
        if existing is None:
            stored = StoredOrder(id=self._next_id, **order.model_dump(exclude={"dispatch", "id"}))
            self._next_id += 1
        else:
            stored = StoredOrder(
                id=existing.id,
                **order.model_dump(exclude={"dispatch", "created_at", "id"}),
                created_at=existing.created_at,
                dispatch=existing.dispatch,
            )
        self._orders[order.external_order_id] = stored
        return stored.model_copy(deep=True)

    async def get_by_external_id(self, external_order_id: str) -> Optional[StoredOrder]:
        stored = self._orders.get(external_order_id)
        return stored.model_copy(deep=True) if stored else None

    async def mark_dispatched(
        self,
        external_order_id: str,
        partner_delivery_id: Optional[str],
        tracking_url: Optional[str] = None,
    ) -> Optional[Failure]:
        stored = self._orders.get(external_order_id)
        if stored is None:
            return None
        now = _utcnow()
        previous = stored.dispatch
        stored.dispatch = DispatchState(
            sent=True,
            partner_delivery_id=partner_delivery_id or previous.partner_delivery_id,
            sent_at=previous.sent_at or now,
            tracking_url=tracking_url or previous.tracking_url,
        )
        stored.updated_at = now
        return None

    def _sorted(self, orders) -> List[StoredOrder]:
        ordered = sorted(orders, key=lambda o: o.fetched_at, reverse=True)
        return [copy.deepcopy(order) for order in ordered]

    async def list_by_status(self, status: str) -> List[StoredOrder]:
        return self._sorted(o for o in self._orders.values() if o.status == status)

    async def list_recent(self, minutes: int = 60) -> List[StoredOrder]:
        since = _utcnow() - timedelta(minutes=minutes)
        return self._sorted(o for o in self._orders.values() if o.fetched_at > since)

    async def list_all(self, limit: int = 50) -> List[StoredOrder]:
        return self._sorted(self._orders.values())[:limit]

    async def count(self) -> int:
        return len(self._orders)


def create_order_store(config: StoreConfig) -> OrderStore:
    """Builds the backend named by config.backend."""
    if config.backend == "memory":
        return InMemoryOrderStore()
    if config.backend == "sql":
        return SqlOrderStore(create_engine_from_config(config))
    raise ValueError(f"Unknown order store backend: {config.backend!r}")
