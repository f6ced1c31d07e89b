"""Webhook Verification Module.

Verifies GitHub-style signed deliveries and classifies them by event type.

Usage:
    from hooklistener.webhooks import check, classify, routing_key

    result = check(body, headers["X-Hub-Signature"], secret)
    if result.valid:
        key = routing_key(path, classify(headers))
"""

from hooklistener.webhooks.events import (
    EVENT_HEADER,
    SIGNATURE_HEADER,
    UNKNOWN_EVENT,
    classify,
    find_header,
    routing_key,
)
from hooklistener.webhooks.verifier import (
    SIGNATURE_ALGORITHM,
    VerificationResult,
    VerificationStatus,
    check,
    compute_digest,
    compute_signature,
    parse_signature_header,
)

__all__ = [
    # Verification
    "check",
    "compute_digest",
    "compute_signature",
    "parse_signature_header",
    "VerificationResult",
    "VerificationStatus",
    "SIGNATURE_ALGORITHM",
    # Classification
    "classify",
    "find_header",
    "routing_key",
    "EVENT_HEADER",
    "SIGNATURE_HEADER",
    "UNKNOWN_EVENT",
]
