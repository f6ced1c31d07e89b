from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

WEBHOOK_REQUESTS = Counter(
    "hooklistener_webhook_requests_total",
    "Total webhook deliveries by outcome",
    ["outcome"],  # "ok" or a failure reason
)

BODY_BYTES = Counter(
    "hooklistener_body_bytes_total",
    "Request body bytes accumulated",
)

QUEUE_APPENDS = Counter(
    "hooklistener_queue_appends_total",
    "Appends to the log",
    ["status"],  # ok/error
)

WRITES_IN_FLIGHT = Gauge(
    "hooklistener_writes_in_flight",
    "Appends currently holding a write slot",
)

WRITE_SLOT_WAIT = Histogram(
    "hooklistener_write_slot_wait_seconds",
    "Time spent waiting for a write slot",
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

APPEND_DURATION = Histogram(
    "hooklistener_append_duration_seconds",
    "Append round-trip latency",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

REQUEST_DURATION = Histogram(
    "hooklistener_request_duration_seconds",
    "Webhook request latency",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)


def generate_metrics() -> bytes:
    return generate_latest()


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST
