from datetime import datetime, timezone
from decimal import Decimal

from conftest import sample_payload

from services.order_service.normalizer import (
    normalize,
    parse_decimal,
    parse_quantity,
    parse_timestamp,
    unwrap_order_payload,
)

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


class TestNormalize:
    def test_platform_order(self):
        order = normalize(sample_payload(), now=NOW)

        assert order.external_order_id == "555"
        assert order.customer_name == "Ana Cruz"
        assert order.delivery_address == "12 Rizal St, Manila"
        assert order.total_price == Decimal("25.00")
        assert order.order_type == "delivery"
        assert order.status == "pending"
        assert order.currency == "PHP"
        assert order.is_delivery
        assert order.dispatch.sent is False

    def test_timestamps_default_to_now(self):
        order = normalize(sample_payload(), now=NOW)
        assert order.created_at == NOW
        assert order.updated_at == NOW
        assert order.fetched_at == NOW

    def test_created_at_from_payload(self):
        order = normalize(sample_payload(created_at="2026-09-30T08:15:00Z"), now=NOW)
        assert order.created_at == datetime(2026, 9, 30, 8, 15, tzinfo=timezone.utc)

    def test_missing_id_gives_empty_external_id(self):
        payload = sample_payload()
        del payload["id"]
        assert normalize(payload, now=NOW).external_order_id == ""

    def test_order_id_alias(self):
        payload = sample_payload()
        del payload["id"]
        payload["order_id"] = "A-77"
        assert normalize(payload, now=NOW).external_order_id == "A-77"

    def test_defaults(self):
        order = normalize({"id": 1}, now=NOW)
        assert order.customer_name == "Unknown"
        assert order.customer_phone == ""
        assert order.delivery_address == ""
        assert order.total_price == Decimal("0")
        assert order.status == "unknown"
        assert order.order_type == "unknown"
        assert order.currency == "USD"
        assert order.items == []
        assert not order.is_delivery

    def test_order_type_match_ignores_case(self):
        for variant in ("Delivery", "DELIVERY", " delivery "):
            assert normalize({"id": 1, "type": variant}, now=NOW).is_delivery
        assert not normalize({"id": 1, "type": "pickup"}, now=NOW).is_delivery

    def test_items_and_subtotal(self):
        order = normalize(sample_payload(), now=NOW)
        assert [item.name for item in order.items] == ["Adobo", "Rice"]
        assert order.items[0].quantity == 2
        assert order.items[0].unit_price == Decimal("10.00")
        assert order.subtotal == Decimal("25.00")

    def test_malformed_items_are_skipped(self):
        order = normalize({"id": 1, "items": ["junk", {"quantity": 0, "price": "abc"}]}, now=NOW)
        assert len(order.items) == 1
        assert order.items[0].name == "Unknown Item"
        assert order.items[0].quantity == 1
        assert order.items[0].unit_price == Decimal("0")

    def test_raw_payload_is_a_copy(self):
        payload = sample_payload()
        order = normalize(payload, now=NOW)
        payload["items"][0]["name"] = "changed"
        assert order.raw_payload["items"][0]["name"] == "Adobo"
        assert order.raw_payload["id"] == 555


class TestUnwrap:
    def test_order_itself(self):
        assert unwrap_order_payload({"id": 1})["id"] == 1

    def test_order_key(self):
        assert unwrap_order_payload({"order": {"id": 2}})["id"] == 2

    def test_data_order(self):
        assert unwrap_order_payload({"data": {"order": {"id": 3}}})["id"] == 3

    def test_list_and_orders_key(self):
        assert unwrap_order_payload([{"id": 4}, {"id": 5}])["id"] == 4
        assert unwrap_order_payload({"orders": [{"id": 6}]})["id"] == 6

    def test_nothing_found(self):
        assert unwrap_order_payload(None) is None
        assert unwrap_order_payload({}) is None
        assert unwrap_order_payload({"hello": "world"}) is None
        assert unwrap_order_payload("text") is None
        assert unwrap_order_payload([1, 2]) is None


class TestParsers:
    def test_parse_decimal(self):
        assert parse_decimal("25.00") == Decimal("25.00")
        assert parse_decimal(25) == Decimal("25.00")
        assert parse_decimal("25.5 USD") == Decimal("25.50")
        assert parse_decimal("10.005") == Decimal("10.01")
        assert parse_decimal("abc") == Decimal("0")
        assert parse_decimal(None) == Decimal("0")
        assert parse_decimal(True) == Decimal("0")
        assert parse_decimal("NaN") == Decimal("0")

    def test_parse_quantity(self):
        assert parse_quantity("3") == 3
        assert parse_quantity(0) == 1
        assert parse_quantity(None) == 1

    def test_parse_timestamp(self):
        expected = datetime(2026, 9, 30, 8, 15, tzinfo=timezone.utc)
        assert parse_timestamp("2026-09-30T08:15:00Z") == expected
        assert parse_timestamp("2026-09-30 08:15:00") == expected
        assert parse_timestamp(expected.timestamp()) == expected
        assert parse_timestamp(int(expected.timestamp() * 1000)) == expected
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None
