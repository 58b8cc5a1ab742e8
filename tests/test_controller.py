import pytest
from conftest import FakeDriveClient, sample_payload

from services.delivery_service.schemas import DeliveryResult
from services.order_service.repository import InMemoryOrderStore
from services.webhook_service.controller import INVALID_PAYLOAD_MESSAGE, DispatchController
from shared.results import Failure, FailureKind, storage_failure


def partner_error(status_code: int = 500) -> Failure:
    return Failure(kind=FailureKind.HTTP_ERROR, message=f"Drive API Error: {status_code}", status_code=status_code)


class BrokenStore(InMemoryOrderStore):
    """Store whose writes fail."""

    async def upsert(self, order):
        return storage_failure("database is locked")


class UnreadableStore(InMemoryOrderStore):
    async def get_by_external_id(self, external_order_id: str):
        return storage_failure("connection reset")


class TestDispatchPolicy:
    async def test_new_delivery_order_is_dispatched_whatever_its_status(self, memory_store, drive_client):
        controller = DispatchController(memory_store, drive_client)

        result = await controller.handle_webhook(sample_payload(status="pending"))

        assert result.success
        assert result.order_id == "555"
        assert result.is_new
        assert result.dispatch.sent
        assert len(drive_client.created) == 1
        assert drive_client.created[0].order_value == 2500

        stored = await memory_store.get_by_external_id("555")
        assert stored.dispatch.sent is True
        assert stored.dispatch.partner_delivery_id == "dd-555"
        assert stored.dispatch.tracking_url == "https://track.example/555"

    async def test_one_dispatch_across_the_order_lifecycle(self, memory_store, drive_client):
        controller = DispatchController(memory_store, drive_client)

        for status in ("pending", "accepted", "accepted", "completed"):
            result = await controller.handle_webhook(sample_payload(status=status))
            assert result.success

        assert len(drive_client.created) == 1
        assert result.dispatch.skipped_reason == "already_sent"
        assert (await memory_store.get_by_external_id("555")).status == "completed"

    async def test_failed_dispatch_is_retried_on_next_update(self, memory_store):
        drive_client = FakeDriveClient(create_results=[partner_error(500)])
        controller = DispatchController(memory_store, drive_client)

        first = await controller.handle_webhook(sample_payload(status="pending"))
        assert first.success
        assert first.dispatch.attempted
        assert not first.dispatch.sent
        assert "500" in first.dispatch.error
        assert (await memory_store.get_by_external_id("555")).dispatch.sent is False

        second = await controller.handle_webhook(sample_payload(status="accepted"))
        assert second.dispatch.sent
        assert len(drive_client.created) == 2
        assert (await memory_store.get_by_external_id("555")).dispatch.sent is True

        await controller.handle_webhook(sample_payload(status="completed"))
        assert len(drive_client.created) == 2

    async def test_unexpected_client_error_leaves_order_unsent(self, memory_store):
        drive_client = FakeDriveClient(create_results=[RuntimeError("socket closed")])
        controller = DispatchController(memory_store, drive_client)

        result = await controller.handle_webhook(sample_payload())

        assert result.success
        assert result.dispatch.error == "socket closed"
        assert (await memory_store.get_by_external_id("555")).dispatch.sent is False

    @pytest.mark.parametrize("order_type", ["pickup", "dine-in", "", None])
    async def test_non_delivery_orders_are_never_dispatched(self, memory_store, drive_client, order_type):
        controller = DispatchController(memory_store, drive_client)

        for status in ("pending", "accepted"):
            result = await controller.handle_webhook(sample_payload(type=order_type, status=status))
            assert result.success
            assert result.dispatch.skipped_reason == "not_delivery"

        assert drive_client.created == []
        assert await memory_store.count() == 1

    @pytest.mark.parametrize("order_type", ["Delivery", "DELIVERY", " delivery "])
    async def test_order_type_is_matched_case_insensitively(self, memory_store, drive_client, order_type):
        controller = DispatchController(memory_store, drive_client)
        await controller.handle_webhook(sample_payload(type=order_type))
        assert len(drive_client.created) == 1

    async def test_order_becoming_delivery_on_update_is_dispatched(self, memory_store, drive_client):
        controller = DispatchController(memory_store, drive_client)

        await controller.handle_webhook(sample_payload(type="pickup"))
        result = await controller.handle_webhook(sample_payload(type="delivery", status="accepted"))

        assert not result.is_new
        assert result.dispatch.sent
        assert len(drive_client.created) == 1

    async def test_unconfigured_partner_still_stores_order(self, memory_store):
        controller = DispatchController(memory_store, None)

        result = await controller.handle_webhook(sample_payload())

        assert result.success
        assert result.dispatch.skipped_reason == "not_configured"
        assert (await memory_store.get_by_external_id("555")).dispatch.sent is False


class TestTrackingUrl:
    async def test_status_lookup_fills_missing_tracking_url(self, memory_store):
        drive_client = FakeDriveClient(
            create_results=[DeliveryResult(partner_delivery_id="dd-9", external_delivery_id="555")],
            status_result=DeliveryResult(partner_delivery_id="dd-9", tracking_url="https://track.example/dd-9"),
        )
        controller = DispatchController(memory_store, drive_client)

        result = await controller.handle_webhook(sample_payload())

        assert drive_client.status_lookups == ["dd-9"]
        assert result.dispatch.tracking_url == "https://track.example/dd-9"
        assert (await memory_store.get_by_external_id("555")).dispatch.tracking_url == "https://track.example/dd-9"

    async def test_failed_lookup_still_marks_sent(self, memory_store):
        drive_client = FakeDriveClient(
            create_results=[DeliveryResult(partner_delivery_id="dd-9", external_delivery_id="555")]
        )
        controller = DispatchController(memory_store, drive_client)

        result = await controller.handle_webhook(sample_payload())

        assert result.dispatch.sent
        assert result.dispatch.tracking_url is None
        stored = await memory_store.get_by_external_id("555")
        assert stored.dispatch.sent is True
        assert stored.dispatch.partner_delivery_id == "dd-9"


class TestRejections:
    @pytest.mark.parametrize("body", [None, {}, {"hello": "world"}, [], "text", {"id": ""}])
    async def test_invalid_payload(self, memory_store, drive_client, body):
        controller = DispatchController(memory_store, drive_client)

        result = await controller.handle_webhook(body)

        assert not result.success
        assert result.order_id is None
        assert result.message == INVALID_PAYLOAD_MESSAGE
        assert await memory_store.count() == 0
        assert drive_client.created == []

    async def test_storage_failure_skips_dispatch(self, drive_client):
        controller = DispatchController(BrokenStore(), drive_client)

        result = await controller.handle_webhook(sample_payload())

        assert not result.success
        assert result.storage_failed
        assert result.order_id == "555"
        assert drive_client.created == []

    async def test_unreadable_prior_record_is_a_storage_failure(self, drive_client):
        controller = DispatchController(UnreadableStore(), drive_client)

        result = await controller.handle_webhook(sample_payload())

        assert result.storage_failed
        assert drive_client.created == []


async def test_wrapped_payload_shapes(memory_store, drive_client):
    controller = DispatchController(memory_store, drive_client)

    await controller.handle_webhook({"orders": [sample_payload(id=1)]})
    await controller.handle_webhook({"data": {"order": sample_payload(id=2)}})
    await controller.handle_webhook([sample_payload(id=3)])

    assert await memory_store.count() == 3
    assert sorted(p.external_delivery_id for p in drive_client.created) == ["1", "2", "3"]


async def test_sql_store_single_dispatch(sql_store, drive_client):
    controller = DispatchController(sql_store, drive_client)

    for status in ("pending", "accepted", "accepted", "completed"):
        await controller.handle_webhook(sample_payload(status=status))

    stored = await sql_store.get_by_external_id("555")
    assert len(drive_client.created) == 1
    assert stored.dispatch.sent is True
    assert stored.status == "completed"


async def test_concrete_platform_order(memory_store, drive_client):
    payload = {
        "id": "555",
        "type": "delivery",
        "client_first_name": "Ana",
        "client_last_name": "Cruz",
        "client_phone": "09171234567",
        "client_address": "12 Rizal St, Manila",
        "total_price": "25.00",
    }
    controller = DispatchController(memory_store, drive_client)

    result = await controller.handle_webhook(payload)

    stored = await memory_store.get_by_external_id("555")
    assert result.success
    assert stored.customer_name == "Ana Cruz"
    assert stored.delivery_address == "12 Rizal St, Manila"
    assert str(stored.total_price) == "25.00"
    assert drive_client.created[0].order_value == 2500
    assert drive_client.created[0].dropoff_phone_number == "09171234567"
