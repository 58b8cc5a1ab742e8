"""
Client for the delivery partner's Drive API.

Converts canonical orders into Drive payloads, creates deliveries and looks
up their status. Every request carries a signed bearer token from
PartnerTokenSigner. Calls are never retried here: a non-2xx answer or a
transport error comes back as a Failure and the caller decides what to do.
"""
import re
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional, Union
from urllib.parse import quote

import httpx
import structlog
from jose import JWTError

from services.order_service.extraction import as_text, extract_name_parts
from services.order_service.schemas import UNKNOWN_CUSTOMER, Order
from shared.config.settings import DriveConfig
from shared.observability import dispatch_partner_request_seconds
from shared.results import Failure, FailureKind
from shared.security import PartnerTokenSigner

from .schemas import DeliveryResult, DrivePayload

logger = structlog.get_logger(__name__)

DEFAULT_CANCELLATION_REASON = "Restaurant cancellation"

DeliveryOutcome = Union[DeliveryResult, Failure]


def normalize_phone(raw: Any) -> str:
    """Digits only, keeping a leading '+'. No country code is inferred."""
    text = as_text(raw) or ""
    digits = re.sub(r"\D", "", text)
    if text.startswith("+") and digits:
        return "+" + digits
    return digits


def to_cents(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _join(*parts: Any) -> str:
    return ", ".join(text for text in (as_text(part) for part in parts) if text)


def build_delivery_payload(order: Order, external_delivery_id: Optional[str] = None) -> DrivePayload:
    """Maps a canonical order to the Drive schema.

    external_delivery_id defaults to the order's external id; pass a fresh one
    to retry safely when an earlier attempt may already exist on the partner side.
    """
    raw = order.raw_payload or {}
    given, family = extract_name_parts(raw)
    if not given and not family and order.customer_name != UNKNOWN_CUSTOMER:
        given = order.customer_name

    pickup_phone = normalize_phone(raw.get("restaurant_phone"))

    return DrivePayload(
        external_delivery_id=external_delivery_id or order.external_order_id,
        pickup_address=_join(
            raw.get("restaurant_street"),
            raw.get("restaurant_city"),
            raw.get("restaurant_state"),
            raw.get("restaurant_zipcode"),
            raw.get("restaurant_country"),
        ),
        pickup_phone_number=pickup_phone or None,
        pickup_business_name=as_text(raw.get("restaurant_name")),
        dropoff_address=order.delivery_address,
        dropoff_phone_number=normalize_phone(order.customer_phone),
        dropoff_contact_given_name=given or None,
        dropoff_contact_family_name=family or None,
        dropoff_instructions=(
            as_text(raw.get("instructions"))
            or as_text(raw.get("notes"))
            or as_text(raw.get("special_instructions"))
        ),
        order_value=to_cents(order.total_price),
    )


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _delivery_from(data: Any, fallback_external_id: Optional[str] = None) -> DeliveryResult:
    data = data if isinstance(data, dict) else {}
    nested = data.get("data") if isinstance(data.get("data"), dict) else {}

    def first(*values):
        for value in values:
            text = as_text(value)
            if text:
                return text
        return None

    return DeliveryResult(
        partner_delivery_id=first(
            data.get("delivery_id"), data.get("id"), data.get("support_reference"), nested.get("delivery_id")
        ),
        external_delivery_id=first(data.get("external_delivery_id"), fallback_external_id),
        status=first(data.get("status"), data.get("delivery_status"), data.get("state"), nested.get("status")),
        tracking_url=first(data.get("tracking_url"), nested.get("tracking_url")),
        raw=data,
    )


def _http_failure(response: httpx.Response) -> Failure:
    body = _response_body(response)
    return Failure(
        kind=FailureKind.HTTP_ERROR,
        message=f"Drive API Error: {response.status_code} - {body}",
        status_code=response.status_code,
        body=body,
    )


class DriveClient:
    def __init__(
        self,
        config: DriveConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        signer: Optional[PartnerTokenSigner] = None,
    ):
        self.config = config
        self.signer = signer or PartnerTokenSigner(
            developer_id=config.developer_id,
            key_id=config.key_id,
            signing_secret=config.signing_secret,
        )
        self._client = http_client or httpx.AsyncClient(
            base_url=config.api_url,
            timeout=config.timeout_seconds,
            headers={"Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def build_delivery_payload(self, order: Order, external_delivery_id: Optional[str] = None) -> DrivePayload:
        return build_delivery_payload(order, external_delivery_id)

    def verify_credentials(self) -> bool:
        """Signs a token locally; no network call."""
        try:
            self.signer.get_token()
            return True
        except (JWTError, ValueError) as e:
            logger.error("drive_credentials_invalid", error=str(e))
            return False

    async def _request(
        self, method: str, path: str, operation: str, json: Optional[Dict[str, Any]] = None
    ) -> Union[httpx.Response, Failure]:
        start = time.perf_counter()
        try:
            return await self._client.request(
                method, path, json=json, headers=self.signer.authorization_header()
            )
        except httpx.HTTPError as e:
            logger.warning("drive_request_failed", operation=operation, path=path, error=repr(e))
            return Failure(kind=FailureKind.TRANSPORT, message=f"Drive API request failed: {e!r}")
        finally:
            dispatch_partner_request_seconds.labels(operation=operation).observe(time.perf_counter() - start)

    async def create_delivery(self, payload: DrivePayload) -> DeliveryOutcome:
        """Single POST /deliveries."""
        body = payload.to_request_body()
        response = await self._request("POST", "/deliveries", "create_delivery", json=body)
        if isinstance(response, Failure):
            return response
        if not response.is_success:
            failure = _http_failure(response)
            logger.warning(
                "drive_delivery_rejected",
                external_delivery_id=payload.external_delivery_id,
                status_code=response.status_code,
            )
            return failure

        result = _delivery_from(_response_body(response), fallback_external_id=payload.external_delivery_id)
        logger.info(
            "drive_delivery_created",
            external_delivery_id=result.external_delivery_id,
            delivery_id=result.partner_delivery_id,
            status=result.status,
        )
        return result

    async def get_delivery_status(self, id_or_external_id: str) -> DeliveryOutcome:
        """Looks the delivery up by partner id, then by external id on both external-id routes.

        NotFound only when all three routes answer 404; any other error stops the chain.
        """
        key = (id_or_external_id or "").strip()
        if not key:
            return Failure(kind=FailureKind.INVALID_REQUEST, message="Missing delivery identifier")

        quoted = quote(key, safe="")
        paths = (
            f"/deliveries/{quoted}",
            f"/deliveries/external_delivery_id/{quoted}",
            f"/deliveries/by_external_id/{quoted}",  # legacy route
        )
        last_body = None
        for path in paths:
            response = await self._request("GET", path, "get_delivery_status")
            if isinstance(response, Failure):
                return response
            if response.status_code == 404:
                last_body = _response_body(response)
                continue
            if not response.is_success:
                return _http_failure(response)
            return _delivery_from(_response_body(response), fallback_external_id=key)

        return Failure(
            kind=FailureKind.NOT_FOUND,
            message=f"Delivery not found for identifier {key!r}; it may not exist yet",
            status_code=404,
            body=last_body,
        )

    async def cancel_delivery(self, id_or_external_id: str, reason: Optional[str] = None) -> DeliveryOutcome:
        key = (id_or_external_id or "").strip()
        if not key:
            return Failure(kind=FailureKind.INVALID_REQUEST, message="Missing delivery identifier")

        response = await self._request(
            "POST",
            f"/deliveries/{quote(key, safe='')}/cancel",
            "cancel_delivery",
            json={"cancellation_reason": reason or DEFAULT_CANCELLATION_REASON},
        )
        if isinstance(response, Failure):
            return response
        if not response.is_success:
            return _http_failure(response)

        result = _delivery_from(_response_body(response), fallback_external_id=key)
        if not result.status:
            result.status = "cancelled"
        logger.info("drive_delivery_cancelled", delivery_id=result.partner_delivery_id or key)
        return result
