from prometheus_client import Counter, Gauge, Histogram

WEBHOOKS_RECEIVED_TOTAL = Counter(
    "epayco_webhooks_received_total",
    "Total payment confirmation callbacks received",
    ["method"],
)

WEBHOOK_STORE_SIZE = Gauge(
    "epayco_webhook_store_size",
    "Number of confirmation callbacks currently retained in memory",
)

TRANSACTION_LOOKUPS_TOTAL = Counter(
    "epayco_transaction_lookups_total",
    "Total transaction lookups",
    ["result"],
)

GATEWAY_REQUEST_DURATION = Histogram(
    "epayco_gateway_request_duration_seconds",
    "Duration of calls to the ePayco API in seconds",
    ["operation"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

TUNNEL_UP = Gauge(
    "epayco_tunnel_up",
    "Whether a public tunnel URL has been established",
)
