"""Event classification and routing keys for webhook deliveries."""

from __future__ import annotations

from collections.abc import Mapping

SIGNATURE_HEADER = "X-Hub-Signature"
EVENT_HEADER = "X-GitHub-Event"
UNKNOWN_EVENT = "unknown"


def find_header(headers: Mapping[str, str | bytes], name: str) -> str | bytes | None:
    """Look up a header value by name, ignoring case."""
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def _decode_lossy(value: str | bytes) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    # aiohttp hands back undecodable header bytes as surrogate escapes
    try:
        raw = value.encode("utf-8", errors="surrogateescape")
    except UnicodeEncodeError:
        # lone surrogates outside the escape range
        raw = value.encode("utf-8", errors="surrogatepass")
    return raw.decode("utf-8", errors="replace")


def classify(headers: Mapping[str, str | bytes], header_name: str = EVENT_HEADER) -> str:
    """Return the delivery's event type, or ``"unknown"`` when the header is absent.

    Invalid UTF-8 in the header value is replaced rather than rejected, so
    this never fails.
    """
    value = find_header(headers, header_name)
    if value is None:
        return UNKNOWN_EVENT
    return _decode_lossy(value)


def routing_key(path: str, event: str) -> str:
    """Build the log key for a delivery: ``"{path}/{event}"``."""
    return f"{path}/{event}"
