from hooklistener.observability.metrics import (
    APPEND_DURATION,
    BODY_BYTES,
    QUEUE_APPENDS,
    REQUEST_DURATION,
    WEBHOOK_REQUESTS,
    WRITE_SLOT_WAIT,
    WRITES_IN_FLIGHT,
    generate_metrics,
    get_content_type,
)

__all__ = [
    # Metrics
    "WEBHOOK_REQUESTS",
    "BODY_BYTES",
    "QUEUE_APPENDS",
    "WRITES_IN_FLIGHT",
    "WRITE_SLOT_WAIT",
    "APPEND_DURATION",
    "REQUEST_DURATION",
    "generate_metrics",
    "get_content_type",
]
