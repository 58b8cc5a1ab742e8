"""
Raw webhook payload -> canonical Order.

normalize() is a pure transform apart from reading the clock: nothing here
touches storage, and malformed values degrade to defaults instead of raising.
"""
import copy
import re
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional

from .extraction import as_text, extract_contact
from .schemas import Order, OrderItem

CENT = Decimal("0.01")
_LEADING_NUMBER = re.compile(r"\s*([-+]?\d+(?:\.\d+)?)")


def _first_text(raw: Mapping, *keys: str) -> Optional[str]:
    for key in keys:
        text = as_text(raw.get(key))
        if text:
            return text
    return None


def _first_present(raw: Mapping, *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def parse_decimal(value: Any, places: Decimal = CENT) -> Decimal:
    """Lenient decimal parse: "25.00", 25, "25.5 USD" all work; anything else is 0."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    text = str(value).strip()
    try:
        number = Decimal(text)
    except (InvalidOperation, ValueError):
        match = _LEADING_NUMBER.match(text)
        if not match:
            return Decimal("0")
        number = Decimal(match.group(1))
    if not number.is_finite():
        return Decimal("0")
    try:
        return number.quantize(places, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return Decimal("0")


def parse_quantity(value: Any) -> int:
    quantity = parse_decimal(value, places=Decimal("1"))
    return int(quantity) if quantity >= 1 else 1


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 text, "YYYY-MM-DD HH:MM:SS", epoch seconds/millis, or datetime -> aware UTC."""
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, (int, float)):
            seconds = value / 1000 if value > 1e12 else value
            parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)
        elif isinstance(value, str) and value.strip():
            text = value.strip()
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            parsed = datetime.fromisoformat(text)
        else:
            return None
    except (ValueError, OverflowError, OSError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_items(raw_items: Any) -> List[OrderItem]:
    if not isinstance(raw_items, list):
        return []
    items = []
    for raw_item in raw_items:
        if not isinstance(raw_item, Mapping):
            continue
        items.append(
            OrderItem(
                name=_first_text(raw_item, "name", "product_name", "title") or "Unknown Item",
                quantity=parse_quantity(raw_item.get("quantity")),
                unit_price=parse_decimal(
                    _first_present(raw_item, "price", "unit_price", "total_price")
                ),
            )
        )
    return items


def _has_order_id(body: Mapping) -> bool:
    return bool(as_text(body.get("id")) or as_text(body.get("order_id")))


def unwrap_order_payload(body: Any) -> Optional[dict]:
    """Finds the order object inside a webhook body.

    Accepts the order itself, {"order": ...}, {"data": {"order": ...}},
    a bare list (first element) or {"orders": [...]}. None when no order is found.
    """
    if not body:
        return None
    if isinstance(body, list):
        first = body[0]
        return dict(first) if isinstance(first, Mapping) else None
    if not isinstance(body, Mapping):
        return None

    if isinstance(body.get("order"), Mapping):
        return dict(body["order"])
    data = body.get("data")
    if isinstance(data, Mapping) and isinstance(data.get("order"), Mapping):
        return dict(data["order"])
    if _has_order_id(body):
        return dict(body)
    orders = body.get("orders")
    if isinstance(orders, list) and orders and isinstance(orders[0], Mapping):
        return dict(orders[0])
    return None


def normalize(raw_payload: Any, now: Optional[datetime] = None) -> Order:
    """Builds the canonical Order. An empty external_order_id means the payload had no id."""
    now = now or datetime.now(timezone.utc)
    raw = raw_payload if isinstance(raw_payload, Mapping) else {}
    contact = extract_contact(raw)

    created_at = parse_timestamp(_first_present(raw, "created_at", "order_date")) or now

    return Order(
        external_order_id=_first_text(raw, "id", "order_id") or "",
        store_id=_first_text(raw, "store_id", "restaurant_id") or "",
        customer_name=contact.name,
        customer_phone=contact.phone,
        customer_email=contact.email,
        delivery_address=contact.delivery_address,
        total_price=parse_decimal(_first_present(raw, "total_price", "total")),
        currency=_first_text(raw, "currency") or "USD",
        status=_first_text(raw, "status", "order_status") or "unknown",
        order_type=_first_text(raw, "order_type", "type") or "unknown",
        items=normalize_items(_first_present(raw, "items", "order_items")),
        raw_payload=copy.deepcopy(dict(raw)),
        created_at=created_at,
        updated_at=now,
        fetched_at=now,
    )
