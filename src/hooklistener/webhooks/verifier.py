"""Webhook Signature Verification.

Verifies GitHub-style ``X-Hub-Signature`` headers (``sha1=<hex-digest>``)
against the raw request body using HMAC-SHA1 and a shared secret.

Security Features:
- Strict header format: exactly one ``=`` separating algorithm and digest
- Only ``sha1`` is accepted; the algorithm name is case-sensitive
- Constant-time digest comparison to prevent timing attacks

Usage:
    from hooklistener.webhooks import check

    result = check(body, request.headers["X-Hub-Signature"], b"my-secret")
    if not result:
        log.warning("rejected", status=result.status.value)
"""

from __future__ import annotations

import binascii
import hashlib
import hmac
from dataclasses import dataclass
from enum import Enum

SIGNATURE_ALGORITHM = "sha1"


class VerificationStatus(Enum):
    """Status of webhook signature verification."""

    VALID = "valid"
    INVALID_FORMAT = "invalid_format"
    UNSUPPORTED_ALGORITHM = "unsupported_algorithm"
    INVALID_DIGEST = "invalid_digest"
    INVALID_SIGNATURE = "invalid_signature"


@dataclass(frozen=True)
class VerificationResult:
    """Result of webhook signature verification."""

    valid: bool
    """Whether the signature is valid."""

    status: VerificationStatus
    """Detailed verification status."""

    error: str | None = None
    """Error message if verification failed. Local diagnostics only."""

    algorithm: str | None = None
    """Algorithm name parsed from the header, if the header was well formed."""

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.valid


def _failure(
    status: VerificationStatus,
    error: str,
    algorithm: str | None = None,
) -> VerificationResult:
    return VerificationResult(valid=False, status=status, error=error, algorithm=algorithm)


def compute_digest(body: bytes, secret: bytes) -> bytes:
    """Compute the raw HMAC-SHA1 digest of ``body`` keyed by ``secret``."""
    return hmac.new(secret, body, hashlib.sha1).digest()


def compute_signature(body: bytes, secret: bytes) -> str:
    """Compute the full signature header value for a payload.

    Args:
        body: The raw payload bytes to sign.
        secret: The shared webhook secret.

    Returns:
        Header value in the form ``sha1=<lowercase hex>``.
    """
    return f"{SIGNATURE_ALGORITHM}={compute_digest(body, secret).hex()}"


def parse_signature_header(header_value: str) -> tuple[str, str] | None:
    """Split a signature header into ``(algorithm, hex_digest)``.

    Returns None unless the value splits on ``=`` into exactly two fields.
    """
    fields = header_value.split("=")
    if len(fields) != 2:
        return None
    algorithm, hex_digest = fields
    return algorithm, hex_digest


def check(body: bytes, header_value: str, secret: bytes) -> VerificationResult:
    """Verify a webhook signature header against the raw body.

    Args:
        body: The exact request body bytes.
        header_value: The signature header value, ``<algo>=<hex-digest>``.
        secret: The shared webhook secret.

    Returns:
        VerificationResult with status and details.
    """
    parsed = parse_signature_header(header_value)
    if parsed is None:
        return _failure(
            VerificationStatus.INVALID_FORMAT,
            "Signature header must be '<algo>=<hex-digest>'",
        )

    algorithm, hex_digest = parsed
    if algorithm != SIGNATURE_ALGORITHM:
        return _failure(
            VerificationStatus.UNSUPPORTED_ALGORITHM,
            f"Unsupported signature algorithm: {algorithm!r}",
            algorithm=algorithm,
        )

    # unhexlify rejects odd lengths and whitespace, unlike bytes.fromhex
    try:
        provided = binascii.unhexlify(hex_digest)
    except ValueError as e:
        return _failure(
            VerificationStatus.INVALID_DIGEST,
            f"Signature digest is not valid hex: {e}",
            algorithm=algorithm,
        )

    expected = compute_digest(body, secret)
    if hmac.compare_digest(expected, provided):
        return VerificationResult(
            valid=True,
            status=VerificationStatus.VALID,
            algorithm=algorithm,
        )

    return _failure(
        VerificationStatus.INVALID_SIGNATURE,
        "Signature mismatch",
        algorithm=algorithm,
    )
