"""Shared fakes for the listener tests."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

import pytest

from hooklistener.queue.producer import ProduceError, SequenceToken

SECRET = b"topsecret"


async def chunked(*parts: bytes):
    """Yield body parts one at a time, suspending between them."""
    for part in parts:
        await asyncio.sleep(0)
        yield part


class FakeProducer:
    """In-memory stand-in for QueueProducer with one writer at a time."""

    def __init__(self, fail: bool = False, delay: float = 0.0) -> None:
        self.fail = fail
        self.delay = delay
        self.records: list[tuple[bytes, bytes, SequenceToken]] = []
        self.capacity = 1
        self.in_flight = 0
        self._seq = 0
        self._lock = asyncio.Lock()

    async def produce(self, key: bytes, content: bytes) -> SequenceToken:
        if self.fail:
            raise ProduceError("connection to log lost")
        async with self._lock:
            self.in_flight += 1
            try:
                await asyncio.sleep(self.delay)
                self._seq += 1
                token = SequenceToken(tx_id=1000 + self._seq, seq=self._seq)
                self.records.append((key, content, token))
                return token
            finally:
                self.in_flight -= 1


class FakeCursor:
    def __init__(self, row):
        self._row = row

    async def fetchone(self):
        return self._row


class FakeConnection:
    def __init__(self, pool: FakePool) -> None:
        self.pool = pool

    async def execute(self, query, params=None):
        self.pool.statements.append(query)
        if self.pool.error is not None:
            raise self.pool.error
        if params is None:
            return FakeCursor(None)
        self.pool.active += 1
        self.pool.max_active = max(self.pool.max_active, self.pool.active)
        try:
            await asyncio.sleep(self.pool.delay)
            self.pool.seq += 1
            self.pool.rows.append(params)
            if self.pool.no_row:
                return FakeCursor(None)
            return FakeCursor((5000, self.pool.seq))
        finally:
            self.pool.active -= 1


class FakePool:
    """Mimics the parts of psycopg_pool.AsyncConnectionPool the producer uses."""

    def __init__(self, delay: float = 0.0, error: Exception | None = None, no_row: bool = False) -> None:
        self.delay = delay
        self.error = error
        self.no_row = no_row
        self.statements: list = []
        self.rows: list[tuple[bytes, bytes]] = []
        self.seq = 0
        self.active = 0
        self.max_active = 0
        self.opened = False
        self.closed = False

    @asynccontextmanager
    async def connection(self):
        yield FakeConnection(self)

    async def open(self, wait: bool = True, timeout: float | None = None) -> None:
        self.opened = True

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def producer() -> FakeProducer:
    return FakeProducer()
