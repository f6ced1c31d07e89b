"""Tests for body accumulation."""

from __future__ import annotations

import asyncio

import pytest

from hooklistener.ingest.body import BodyReadError, BodyTooLarge, accumulate_body

from conftest import chunked


async def _broken(*parts: bytes, error: Exception):
    for part in parts:
        yield part
    raise error


class TestAccumulateBody:
    """Tests for accumulate_body()."""

    @pytest.mark.asyncio
    async def test_concatenates_in_order(self):
        body = await accumulate_body(chunked(b'{"a"', b":", b"1}"))
        assert body == b'{"a":1}'

    @pytest.mark.asyncio
    async def test_empty_stream(self):
        assert await accumulate_body(chunked()) == b""

    @pytest.mark.asyncio
    async def test_empty_chunks_ignored(self):
        assert await accumulate_body(chunked(b"", b"ab", b"", b"c")) == b"abc"

    @pytest.mark.asyncio
    async def test_returns_bytes(self):
        body = await accumulate_body(chunked(b"x"))
        assert type(body) is bytes

    @pytest.mark.asyncio
    async def test_no_limit_by_default(self):
        """Test large bodies are accepted when no cap is set."""
        parts = [b"x" * 65536] * 32
        body = await accumulate_body(chunked(*parts))
        assert len(body) == 65536 * 32

    @pytest.mark.asyncio
    async def test_limit_exact_size_allowed(self):
        assert await accumulate_body(chunked(b"abc", b"de"), max_size=5) == b"abcde"

    @pytest.mark.asyncio
    async def test_limit_exceeded(self):
        """Test the cap triggers as soon as the running total passes it."""
        consumed = []

        async def tracked():
            for part in (b"abc", b"def", b"ghi"):
                consumed.append(part)
                yield part

        with pytest.raises(BodyTooLarge) as exc_info:
            await accumulate_body(tracked(), max_size=5)

        assert exc_info.value.limit == 5
        assert exc_info.value.received == 6
        assert consumed == [b"abc", b"def"]

    @pytest.mark.asyncio
    async def test_connection_reset_becomes_body_read_error(self):
        stream = _broken(b"ab", error=ConnectionResetError("Connection lost"))
        with pytest.raises(BodyReadError, match="Connection lost"):
            await accumulate_body(stream)

    @pytest.mark.asyncio
    async def test_incomplete_read_becomes_body_read_error(self):
        stream = _broken(b"ab", error=asyncio.IncompleteReadError(b"ab", 10))
        with pytest.raises(BodyReadError):
            await accumulate_body(stream)

    @pytest.mark.asyncio
    async def test_body_read_error_passes_through(self):
        stream = _broken(error=BodyReadError("payload not completed"))
        with pytest.raises(BodyReadError, match="payload not completed"):
            await accumulate_body(stream)
