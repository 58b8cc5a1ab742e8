from .setup import setup_observability
from .metrics import (
    dispatch_webhooks_total,
    dispatch_orders_upserted_total,
    dispatch_attempts_total,
    dispatch_partner_request_seconds
)
