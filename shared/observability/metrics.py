from prometheus_client import Counter, Histogram

# Business Metrics
dispatch_webhooks_total = Counter(
    "dispatch_webhooks_total",
    "Inbound order webhooks handled",
    ["outcome"] # Labels: 'stored', 'invalid_payload', 'storage_failed', 'error'
)

dispatch_orders_upserted_total = Counter(
    "dispatch_orders_upserted_total",
    "Orders written to the order store",
    ["kind"] # Labels: 'new', 'update'
)

dispatch_attempts_total = Counter(
    "dispatch_attempts_total",
    "Delivery dispatch attempts",
    ["result"] # Labels: 'sent', 'failed', 'error', 'skipped_not_configured'
)

dispatch_partner_request_seconds = Histogram(
    "dispatch_partner_request_seconds",
    "Delivery partner API call duration in seconds",
    ["operation"] # Labels: 'create_delivery', 'get_delivery_status', 'cancel_delivery'
)
