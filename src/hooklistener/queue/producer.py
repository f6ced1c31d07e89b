"""Serialized producer for the PostgreSQL append-only log.

Every verified delivery becomes one row in the log table. The producer is
the single writer of the whole gateway: a semaphore caps the number of
appends in flight (one by default) and all concurrent requests queue behind
it. The connection pool is sized to the same capacity so a write slot always
maps to a ready connection.

Example:
    producer = await QueueProducer.open(dsn, table="logs")
    token = await producer.produce(b"org/repo/push", body)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from time import monotonic
from typing import Any

import psycopg
import structlog
from psycopg import sql
from psycopg.conninfo import conninfo_to_dict
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from hooklistener.observability.metrics import (
    APPEND_DURATION,
    QUEUE_APPENDS,
    WRITE_SLOT_WAIT,
    WRITES_IN_FLIGHT,
)

logger = structlog.get_logger()

DEFAULT_TABLE = "logs"

_CREATE_TABLE = sql.SQL(
    """
    CREATE TABLE IF NOT EXISTS {table} (
        seq bigserial PRIMARY KEY,
        tx_id bigint NOT NULL DEFAULT txid_current(),
        written_at timestamptz NOT NULL DEFAULT now(),
        key bytea NOT NULL,
        body bytea NOT NULL
    )
    """
)

_INSERT = sql.SQL("INSERT INTO {table} (key, body) VALUES (%s, %s) RETURNING tx_id, seq")


class ProduceError(Exception):
    """An append to the log failed. Not retried."""


class StartupError(Exception):
    """The log could not be reached or provisioned at startup."""


@dataclass(frozen=True, order=True)
class SequenceToken:
    """Position of an appended record, as assigned by the log."""

    tx_id: int
    seq: int

    def __str__(self) -> str:
        return f"{self.tx_id}:{self.seq}"


def describe_dsn(dsn: str) -> dict[str, Any]:
    """Return loggable connection parameters with the password removed."""
    try:
        params = conninfo_to_dict(dsn)
    except psycopg.ProgrammingError as e:
        return {"error": str(e)}
    params.pop("password", None)
    return {k: params[k] for k in ("host", "port", "dbname", "user") if k in params}


class QueueProducer:
    """Single-writer adapter around the log table.

    Args:
        pool: Connection pool to the database holding the log.
        table: Log table name.
        max_in_flight: Maximum concurrent appends. The write path's
            backpressure point; defaults to one writer.
    """

    def __init__(
        self,
        pool: AsyncConnectionPool,
        table: str = DEFAULT_TABLE,
        max_in_flight: int = 1,
    ) -> None:
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be at least 1")
        self._pool = pool
        self._table = sql.Identifier(table)
        self._capacity = max_in_flight
        self._slots = asyncio.Semaphore(max_in_flight)
        self._in_flight = 0
        self.table = table

    @classmethod
    async def open(
        cls,
        dsn: str,
        *,
        table: str = DEFAULT_TABLE,
        max_in_flight: int = 1,
        connect_timeout: float = 30.0,
    ) -> QueueProducer:
        """Connect to the log and provision its table.

        Raises:
            StartupError: If the pool cannot be filled or setup fails.
        """
        pool = AsyncConnectionPool(
            dsn,
            min_size=max_in_flight,
            max_size=max_in_flight,
            timeout=connect_timeout,
            name="hook-listener",
            open=False,
        )
        logger.info("Connecting to log", table=table, capacity=max_in_flight, **describe_dsn(dsn))
        try:
            await pool.open(wait=True, timeout=connect_timeout)
        except (PoolTimeout, psycopg.Error, OSError) as e:
            await pool.close()
            raise StartupError(f"Cannot connect to log database: {e}") from e

        producer = cls(pool, table=table, max_in_flight=max_in_flight)
        try:
            await producer.setup()
        except (PoolTimeout, psycopg.Error, OSError) as e:
            await pool.close()
            raise StartupError(f"Cannot provision log table {table!r}: {e}") from e
        return producer

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def setup(self) -> None:
        """Create the log table if it does not exist. Idempotent."""
        async with self._pool.connection() as conn:
            await conn.execute(_CREATE_TABLE.format(table=self._table))
        logger.info("Log table ready", table=self.table)

    async def produce(self, key: bytes, content: bytes) -> SequenceToken:
        """Append one record and return its sequence token.

        Raises:
            ProduceError: On any database or connection failure.
        """
        waited_from = monotonic()
        async with self._slots:
            WRITE_SLOT_WAIT.observe(monotonic() - waited_from)
            self._in_flight += 1
            WRITES_IN_FLIGHT.inc()
            started = monotonic()
            try:
                token = await self._append(key, content)
            except ProduceError:
                QUEUE_APPENDS.labels(status="error").inc()
                raise
            except (PoolTimeout, psycopg.Error, OSError) as e:
                QUEUE_APPENDS.labels(status="error").inc()
                raise ProduceError(f"Append to {self.table!r} failed: {e}") from e
            finally:
                self._in_flight -= 1
                WRITES_IN_FLIGHT.dec()
                APPEND_DURATION.observe(monotonic() - started)

        QUEUE_APPENDS.labels(status="ok").inc()
        return token

    async def _append(self, key: bytes, content: bytes) -> SequenceToken:
        async with self._pool.connection() as conn:
            cur = await conn.execute(_INSERT.format(table=self._table), (key, content))
            row = await cur.fetchone()
        if row is None:
            raise ProduceError("Log returned no sequence token")
        tx_id, seq = row
        return SequenceToken(tx_id=tx_id, seq=seq)

    async def close(self) -> None:
        await self._pool.close()
        logger.info("Log connection closed", table=self.table)
