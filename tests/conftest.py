# tests/conftest.py
import os
from typing import AsyncGenerator, List, Optional

import pytest
import pytest_asyncio

# Must be set before any app module builds its settings
os.environ["DB_BACKEND"] = "memory"
os.environ["OTEL_ENABLED"] = "false"
os.environ["METRICS_ENABLED"] = "false"
os.environ["WEBHOOK_PATH"] = "/webhook"
for name in (
    "WEBHOOK_API_KEY",
    "WEBHOOK_MASTER_KEY",
    "DOORDASH_DEVELOPER_ID",
    "DOORDASH_KEY_ID",
    "DOORDASH_SIGNING_SECRET",
    "DATABASE_URL",
    "POSTGRES_HOST",
):
    os.environ.pop(name, None)

from services.delivery_service.client import build_delivery_payload  # noqa: E402
from services.delivery_service.schemas import DeliveryResult, DrivePayload  # noqa: E402
from services.order_service.repository import InMemoryOrderStore, SqlOrderStore  # noqa: E402
from shared.config.database import create_engine_from_config  # noqa: E402
from shared.config.settings import StoreConfig  # noqa: E402
from shared.results import Failure, FailureKind  # noqa: E402


def sample_payload(**overrides) -> dict:
    """A delivery order as the ordering platform sends it."""
    payload = {
        "id": 555,
        "client_first_name": "Ana",
        "client_last_name": "Cruz",
        "client_phone": "+63 917 555 0101",
        "client_email": "ana@example.com",
        "client_address": "12 Rizal St, Manila",
        "total_price": "25.00",
        "currency": "PHP",
        "type": "delivery",
        "status": "pending",
        "restaurant_name": "Kusina",
        "restaurant_street": "1 Ayala Ave",
        "restaurant_city": "Makati",
        "restaurant_phone": "+63 2 8888 0000",
        "items": [
            {"name": "Adobo", "quantity": 2, "price": "10.00"},
            {"name": "Rice", "quantity": 1, "price": "5.00"},
        ],
    }
    payload.update(overrides)
    return payload


class FakeDriveClient:
    """Stands in for DriveClient; queued results are consumed one per create call."""

    def __init__(self, create_results: Optional[list] = None, status_result=None):
        self.create_results = list(create_results or [])
        self.status_result = status_result
        self.created: List[DrivePayload] = []
        self.status_lookups: List[str] = []

    def build_delivery_payload(self, order, external_delivery_id=None) -> DrivePayload:
        return build_delivery_payload(order, external_delivery_id)

    async def create_delivery(self, payload: DrivePayload):
        self.created.append(payload)
        if self.create_results:
            result = self.create_results.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        return DeliveryResult(
            partner_delivery_id=f"dd-{payload.external_delivery_id}",
            external_delivery_id=payload.external_delivery_id,
            status="created",
            tracking_url=f"https://track.example/{payload.external_delivery_id}",
        )

    async def get_delivery_status(self, key: str):
        self.status_lookups.append(key)
        if self.status_result is not None:
            return self.status_result
        return Failure(kind=FailureKind.NOT_FOUND, message="not found", status_code=404)


@pytest.fixture
def memory_store() -> InMemoryOrderStore:
    return InMemoryOrderStore()


@pytest_asyncio.fixture(scope="function")
async def sql_store(tmp_path) -> AsyncGenerator[SqlOrderStore, None]:
    config = StoreConfig(backend="sql", url=f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    store = SqlOrderStore(create_engine_from_config(config))
    await store.initialize()
    try:
        yield store
    finally:
        await store.close()


@pytest_asyncio.fixture(params=["memory", "sql"])
async def order_store(request, tmp_path):
    """Runs a test against both store backends."""
    if request.param == "memory":
        yield InMemoryOrderStore()
        return
    config = StoreConfig(backend="sql", url=f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    store = SqlOrderStore(create_engine_from_config(config))
    await store.initialize()
    try:
        yield store
    finally:
        await store.close()


@pytest.fixture
def drive_client() -> FakeDriveClient:
    return FakeDriveClient()
