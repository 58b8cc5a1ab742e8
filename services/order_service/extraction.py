"""
Customer and address extraction from order payloads of varying shape.

The platform's payload layout has drifted between integration versions, so
each field is resolved from an ordered table of (path expression, target)
rules. The first rule that yields a non-empty value wins. Order of the table
is the precedence contract:

    root flat fields  >  nested client.*  >  nested customer.*  >  generic fields

Path expressions:

    "a.b"         value at payload["a"]["b"], as text
    "a+b"         the non-empty values of both paths joined with a space
    "a.b{}"       a structured address object at that path, formatted as
                  "street, unit, city, state, zip, country"

Every function here is pure and never raises: missing or malformed nested
objects resolve to empty values.
"""
from decimal import Decimal
from typing import Any, Mapping, NamedTuple, Optional, Tuple

from .schemas import UNKNOWN_CUSTOMER

CUSTOMER_NAME = "customer_name"
GIVEN_NAME = "given_name"
FAMILY_NAME = "family_name"
CUSTOMER_PHONE = "customer_phone"
CUSTOMER_EMAIL = "customer_email"
DELIVERY_ADDRESS = "delivery_address"

EXTRACTION_RULES: Tuple[Tuple[str, str], ...] = (
    # --- name ---
    ("client_first_name+client_last_name", CUSTOMER_NAME),
    ("client_name", CUSTOMER_NAME),
    ("client.first_name+client.last_name", CUSTOMER_NAME),
    ("client.name", CUSTOMER_NAME),
    ("client.full_name", CUSTOMER_NAME),
    ("client.firstName+client.lastName", CUSTOMER_NAME),
    ("customer.name", CUSTOMER_NAME),
    ("customer.first_name+customer.last_name", CUSTOMER_NAME),
    ("customer.full_name", CUSTOMER_NAME),
    ("customer.firstName+customer.lastName", CUSTOMER_NAME),
    ("customer_name", CUSTOMER_NAME),
    ("name", CUSTOMER_NAME),
    ("first_name+last_name", CUSTOMER_NAME),
    # --- name parts, for the courier contact ---
    ("client_first_name", GIVEN_NAME),
    ("client.first_name", GIVEN_NAME),
    ("client.firstName", GIVEN_NAME),
    ("customer.first_name", GIVEN_NAME),
    ("customer.firstName", GIVEN_NAME),
    ("first_name", GIVEN_NAME),
    ("client_last_name", FAMILY_NAME),
    ("client.last_name", FAMILY_NAME),
    ("client.lastName", FAMILY_NAME),
    ("customer.last_name", FAMILY_NAME),
    ("customer.lastName", FAMILY_NAME),
    ("last_name", FAMILY_NAME),
    # --- phone ---
    ("client_phone", CUSTOMER_PHONE),
    ("client_phone_number", CUSTOMER_PHONE),
    ("client.phone", CUSTOMER_PHONE),
    ("client.phone_number", CUSTOMER_PHONE),
    ("client.mobile", CUSTOMER_PHONE),
    ("client.tel", CUSTOMER_PHONE),
    ("client.telephone", CUSTOMER_PHONE),
    ("customer.phone", CUSTOMER_PHONE),
    ("customer.phone_number", CUSTOMER_PHONE),
    ("customer.mobile", CUSTOMER_PHONE),
    ("customer.tel", CUSTOMER_PHONE),
    ("customer_phone", CUSTOMER_PHONE),
    ("phone", CUSTOMER_PHONE),
    ("phone_number", CUSTOMER_PHONE),
    ("mobile", CUSTOMER_PHONE),
    ("tel", CUSTOMER_PHONE),
    # --- email ---
    ("client_email", CUSTOMER_EMAIL),
    ("client.email", CUSTOMER_EMAIL),
    ("client.email_address", CUSTOMER_EMAIL),
    ("customer.email", CUSTOMER_EMAIL),
    ("customer.email_address", CUSTOMER_EMAIL),
    ("customer_email", CUSTOMER_EMAIL),
    ("email", CUSTOMER_EMAIL),
    ("email_address", CUSTOMER_EMAIL),
    # --- delivery address ---
    ("client_address", DELIVERY_ADDRESS),
    ("client_address_parts{}", DELIVERY_ADDRESS),
    ("delivery.address{}", DELIVERY_ADDRESS),
    ("delivery.address", DELIVERY_ADDRESS),
    ("delivery{}", DELIVERY_ADDRESS),
    ("delivery.full_address", DELIVERY_ADDRESS),
    ("delivery.formatted_address", DELIVERY_ADDRESS),
    ("client.address", DELIVERY_ADDRESS),
    ("client.address{}", DELIVERY_ADDRESS),
    ("customer.address", DELIVERY_ADDRESS),
    ("customer.address{}", DELIVERY_ADDRESS),
    ("delivery_address", DELIVERY_ADDRESS),
    ("address", DELIVERY_ADDRESS),
    ("address{}", DELIVERY_ADDRESS),
    ("shipping_address", DELIVERY_ADDRESS),
)

# Structured address components, in output order, each with its accepted key aliases
ADDRESS_COMPONENTS: Tuple[Tuple[str, ...], ...] = (
    ("street", "address_line_1", "address", "line1", "line_1", "street_address"),
    ("more_address", "address_line_2", "line2", "line_2", "apt", "apartment", "unit"),
    ("city", "locality", "town"),
    ("state", "province", "region", "state_province"),
    ("zip", "postal_code", "postcode", "zip_code", "postal"),
    ("country", "country_code"),
)


class ContactDetails(NamedTuple):
    name: str
    given_name: str
    family_name: str
    phone: str
    email: str
    delivery_address: str


def as_text(value: Any) -> Optional[str]:
    """Scalar -> stripped text; containers, booleans and blanks -> None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (str, int, float, Decimal)):
        text = str(value).strip()
        return text or None
    return None


def _lookup(payload: Any, path: str) -> Any:
    node = payload
    for key in path.split("."):
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node


def format_address(parts: Any) -> Optional[str]:
    """Formats a structured address object; None when no component is present."""
    if not isinstance(parts, Mapping):
        return None
    components = []
    for aliases in ADDRESS_COMPONENTS:
        for alias in aliases:
            text = as_text(parts.get(alias))
            if text:
                components.append(text)
                break
    return ", ".join(components) or None


def resolve(payload: Any, expression: str) -> Optional[str]:
    """Evaluates one path expression against the payload."""
    if expression.endswith("{}"):
        return format_address(_lookup(payload, expression[:-2]))
    if "+" in expression:
        texts = [as_text(_lookup(payload, path)) for path in expression.split("+")]
        return " ".join(text for text in texts if text) or None
    return as_text(_lookup(payload, expression))


def extract(payload: Any, target: str, default: str = "") -> str:
    """First non-empty value for a target field, in rule order."""
    if not isinstance(payload, Mapping):
        return default
    for expression, rule_target in EXTRACTION_RULES:
        if rule_target != target:
            continue
        value = resolve(payload, expression)
        if value:
            return value
    return default


def extract_customer_name(payload: Any) -> str:
    return extract(payload, CUSTOMER_NAME, default=UNKNOWN_CUSTOMER)


def extract_customer_phone(payload: Any) -> str:
    return extract(payload, CUSTOMER_PHONE)


def extract_customer_email(payload: Any) -> str:
    return extract(payload, CUSTOMER_EMAIL)


def extract_delivery_address(payload: Any) -> str:
    return extract(payload, DELIVERY_ADDRESS)


def extract_name_parts(payload: Any) -> Tuple[str, str]:
    return extract(payload, GIVEN_NAME), extract(payload, FAMILY_NAME)


def extract_contact(payload: Any) -> ContactDetails:
    given, family = extract_name_parts(payload)
    return ContactDetails(
        name=extract_customer_name(payload),
        given_name=given,
        family_name=family,
        phone=extract_customer_phone(payload),
        email=extract_customer_email(payload),
        delivery_address=extract_delivery_address(payload),
    )
