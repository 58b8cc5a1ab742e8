"""
Dispatch controller: one inbound order event -> persisted order -> at most one dispatch.

Per event:
  1. unseen order id:  upsert, then dispatch any delivery order straight away,
     whatever its business status, so couriers are booked before the merchant
     even accepts.
  2. known order id:   upsert, then dispatch only if it is a delivery order
     that has not been sent yet (an earlier attempt failed).
  3. non-delivery:     persist only.

A failed dispatch leaves dispatch.sent false; the next update for the same
order is the only retry. Nothing in here raises out to the webhook handler
for storage or partner failures.
"""
from typing import Any, Optional

import structlog

from services.delivery_service.client import DriveClient
from services.order_service.normalizer import normalize, unwrap_order_payload
from services.order_service.repository import OrderStore
from services.order_service.schemas import Order, StoredOrder
from shared.observability import (
    dispatch_attempts_total,
    dispatch_orders_upserted_total,
    dispatch_webhooks_total,
)
from shared.results import Failure

from .schemas import DispatchOutcome, WebhookResult

logger = structlog.get_logger(__name__)

INVALID_PAYLOAD_MESSAGE = "Invalid payload - no order data found"


class DispatchController:
    def __init__(self, store: OrderStore, drive_client: Optional[DriveClient] = None):
        self.store = store
        self.drive_client = drive_client

    async def handle_webhook(self, body: Any) -> WebhookResult:
        raw = unwrap_order_payload(body)
        order = normalize(raw) if raw is not None else None
        if order is None or not order.external_order_id:
            logger.warning("webhook_invalid_payload")
            dispatch_webhooks_total.labels(outcome="invalid_payload").inc()
            return WebhookResult(success=False, message=INVALID_PAYLOAD_MESSAGE)
        return await self.process_order(order)

    async def process_order(self, order: Order) -> WebhookResult:
        log = logger.bind(order_id=order.external_order_id)

        prior = await self.store.get_by_external_id(order.external_order_id)
        if isinstance(prior, Failure):
            return self._storage_failed(order, prior)

        stored = await self.store.upsert(order)
        if isinstance(stored, Failure):
            return self._storage_failed(order, stored)

        is_new = prior is None
        dispatch_orders_upserted_total.labels(kind="new" if is_new else "update").inc()
        dispatch_webhooks_total.labels(outcome="stored").inc()
        log.info("order_stored", is_new=is_new, status=stored.status, order_type=stored.order_type)

        if not stored.is_delivery:
            dispatch = DispatchOutcome(skipped_reason="not_delivery")
        elif not is_new and prior.dispatch.sent:
            dispatch = DispatchOutcome(skipped_reason="already_sent")
        else:
            dispatch = await self.dispatch(stored)

        return WebhookResult(
            success=True,
            order_id=stored.external_order_id,
            message="Order received and processed",
            is_new=is_new,
            dispatch=dispatch,
        )

    async def dispatch(self, order: StoredOrder) -> DispatchOutcome:
        """Sends the order to the delivery partner once and records the outcome."""
        log = logger.bind(order_id=order.external_order_id)
        if self.drive_client is None:
            dispatch_attempts_total.labels(result="skipped_not_configured").inc()
            log.info("dispatch_skipped", reason="not_configured")
            return DispatchOutcome(skipped_reason="not_configured")

        log.info("dispatch_attempt", status=order.status)
        try:
            payload = self.drive_client.build_delivery_payload(order)
            result = await self.drive_client.create_delivery(payload)
        except Exception as e:
            log.exception("dispatch_error")
            dispatch_attempts_total.labels(result="error").inc()
            return DispatchOutcome(attempted=True, error=str(e))

        if isinstance(result, Failure):
            log.warning("dispatch_failed", kind=result.kind, status_code=result.status_code)
            dispatch_attempts_total.labels(result="failed").inc()
            return DispatchOutcome(attempted=True, error=result.message)

        tracking_url = result.tracking_url
        if not tracking_url and result.partner_delivery_id:
            tracking_url = await self._lookup_tracking_url(result.partner_delivery_id)

        outcome = DispatchOutcome(
            attempted=True,
            sent=True,
            partner_delivery_id=result.partner_delivery_id,
            tracking_url=tracking_url,
        )
        marked = await self.store.mark_dispatched(
            order.external_order_id, result.partner_delivery_id, tracking_url
        )
        if isinstance(marked, Failure):
            # The partner has the delivery but the store does not know; a later update may re-send
            log.error("dispatch_not_recorded", partner_delivery_id=result.partner_delivery_id)
            outcome.error = marked.message

        dispatch_attempts_total.labels(result="sent").inc()
        log.info("dispatch_sent", partner_delivery_id=result.partner_delivery_id, tracking_url=tracking_url)
        return outcome

    async def _lookup_tracking_url(self, partner_delivery_id: str) -> Optional[str]:
        try:
            status = await self.drive_client.get_delivery_status(partner_delivery_id)
        except Exception:
            logger.warning("tracking_url_lookup_error", partner_delivery_id=partner_delivery_id, exc_info=True)
            return None
        if isinstance(status, Failure):
            return None
        return status.tracking_url

    def _storage_failed(self, order: Order, failure: Failure) -> WebhookResult:
        logger.error("order_store_failed", order_id=order.external_order_id, error=failure.message)
        dispatch_webhooks_total.labels(outcome="storage_failed").inc()
        return WebhookResult(
            success=False,
            order_id=order.external_order_id,
            message="Failed to store order",
            storage_failed=True,
        )
