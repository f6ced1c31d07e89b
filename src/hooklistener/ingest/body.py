"""Request body accumulation over an async chunk stream."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable


class BodyReadError(Exception):
    """The body stream ended abnormally before completion."""


class BodyTooLarge(Exception):
    """The body exceeded the configured maximum size."""

    def __init__(self, limit: int, received: int) -> None:
        super().__init__(f"Request body exceeds {limit} bytes (received at least {received})")
        self.limit = limit
        self.received = received


async def accumulate_body(
    chunks: AsyncIterable[bytes],
    max_size: int | None = None,
) -> bytes:
    """Concatenate a chunk stream into one buffer, preserving order.

    Args:
        chunks: Body chunks in arrival order.
        max_size: Optional cap in bytes. None means unbounded.

    Returns:
        The complete body.

    Raises:
        BodyReadError: If the stream fails mid-flight.
        BodyTooLarge: If ``max_size`` is set and the running total passes it.
    """
    buffer = bytearray()
    try:
        async for chunk in chunks:
            buffer += chunk
            if max_size is not None and len(buffer) > max_size:
                raise BodyTooLarge(max_size, len(buffer))
    except (ConnectionError, asyncio.IncompleteReadError) as e:
        raise BodyReadError(str(e) or type(e).__name__) from e
    return bytes(buffer)
