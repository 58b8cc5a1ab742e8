"""
Inbound order webhook.

The ordering platform retries on anything but a 2xx, so the handler answers
200 for every event it has durably recorded or can never record (bad
payload, unexpected error). Only a storage failure gets a non-2xx, so the
platform redelivers the event later.
"""
import json
from typing import Any, Optional
from urllib.parse import parse_qsl

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from services.order_service.normalizer import unwrap_order_payload
from shared.config.settings import Settings, get_settings
from shared.observability import dispatch_webhooks_total
from shared.security import is_known_caller

from .controller import DispatchController
from .dependencies import get_dispatch_controller

logger = structlog.get_logger(__name__)

router = APIRouter()


async def _read_body(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return None
    content_type = request.headers.get("content-type", "")
    if "application/x-www-form-urlencoded" in content_type:
        form = dict(parse_qsl(raw.decode("utf-8", errors="replace")))
        # Some senders put the whole order JSON in a single form field
        for field_name in ("order", "data", "payload"):
            if isinstance(form.get(field_name), str):
                try:
                    form[field_name] = json.loads(form[field_name])
                except ValueError:
                    pass
        return form
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("webhook_body_not_json", content_type=content_type, size=len(raw))
        return None


def _received(body: Any, request: Request) -> dict:
    return {
        "has_body": body is not None,
        "body_keys": sorted(body.keys()) if isinstance(body, dict) else [],
        "content_type": request.headers.get("content-type"),
    }


async def receive_order_webhook(
    request: Request,
    controller: DispatchController = Depends(get_dispatch_controller),
    settings: Settings = Depends(get_settings),
):
    body = await _read_body(request)
    query = dict(request.query_params)
    headers = {name.lower(): value for name, value in request.headers.items()}

    if not is_known_caller(
        headers,
        query,
        body if isinstance(body, dict) else None,
        api_key=settings.webhook_api_key,
        master_key=settings.webhook_master_key,
    ):
        # Recorded for auditing only; unverified orders are still accepted
        logger.warning("webhook_caller_unverified", client=request.client.host if request.client else None)

    if unwrap_order_payload(body) is None and unwrap_order_payload(query) is not None:
        body = query

    try:
        result = await controller.handle_webhook(body)
    except Exception:
        logger.exception("webhook_processing_error")
        dispatch_webhooks_total.labels(outcome="error").inc()
        return JSONResponse(
            status_code=200,
            content={"success": False, "order_id": None, "message": "Webhook processing error"},
        )

    content = result.to_ack()
    if result.storage_failed:
        return JSONResponse(status_code=settings.storage_failure_status_code, content=content)
    if not result.success:
        content["received"] = _received(body, request)
    return JSONResponse(status_code=200, content=content)


async def webhook_info(settings: Settings = Depends(get_settings)):
    return {
        "service": "webhook",
        "status": "ready",
        "method": "POST",
        "path": settings.webhook_path,
        "accepts": ["application/json", "application/x-www-form-urlencoded"],
        "caller_check": bool(settings.webhook_api_key or settings.webhook_master_key),
    }


def _register(path: str, summary: Optional[str] = None) -> None:
    router.add_api_route(path, receive_order_webhook, methods=["POST"], summary=summary)
    router.add_api_route(path, webhook_info, methods=["GET"], include_in_schema=False)


_register(get_settings().webhook_path, summary="Receive an order event")
