"""Per-request ingestion pipeline.

Each delivery moves through a fixed sequence of stages:

    ACCUMULATING -> VERIFYING -> CLASSIFYING -> ENQUEUING -> RESPONDING

and ends either succeeded or failed with a single reason. The pipeline is
HTTP-agnostic: it takes a path, a header mapping and an async chunk stream,
and returns an ``IngestResult`` carrying the status code and body to send.

Verification always runs over the exact accumulated bytes, and those same
bytes are what gets appended. Nothing is decoded or re-encoded in between.

Client-visible failures are deliberately generic; which check failed is only
recorded in the local log.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, Mapping
from dataclasses import dataclass
from enum import Enum

import structlog

from hooklistener.ingest.body import BodyReadError, BodyTooLarge, accumulate_body
from hooklistener.observability.metrics import BODY_BYTES, WEBHOOK_REQUESTS
from hooklistener.queue.producer import ProduceError, QueueProducer, SequenceToken
from hooklistener.webhooks.events import (
    EVENT_HEADER,
    SIGNATURE_HEADER,
    classify,
    find_header,
    routing_key,
)
from hooklistener.webhooks.verifier import VerificationResult, check

logger = structlog.get_logger()

EXCERPT_BYTES = 64

SUCCESS_BODY = "ok\n"


class Stage(Enum):
    """Pipeline stage a request reached."""

    ACCUMULATING = "accumulating"
    VERIFYING = "verifying"
    CLASSIFYING = "classifying"
    ENQUEUING = "enqueuing"
    RESPONDING = "responding"


class FailureReason(Enum):
    """Why a request failed, with the HTTP status and generic body it maps to."""

    BODY_READ_ERROR = ("body_read_error", 400, "bad request\n")
    BODY_TOO_LARGE = ("body_too_large", 413, "payload too large\n")
    MISSING_SIGNATURE = ("missing_signature", 400, "bad request\n")
    INVALID_SIGNATURE = ("invalid_signature", 400, "bad request\n")
    QUEUE_WRITE_ERROR = ("queue_write_error", 500, "internal server error\n")

    def __init__(self, label: str, status: int, body: str) -> None:
        self.label = label
        self.status = status
        self.body = body


@dataclass(frozen=True)
class VerifiedPayload:
    """A delivery whose signature checked out."""

    body: bytes
    event: str


@dataclass(frozen=True)
class IngestResult:
    """Terminal state of one pipeline run."""

    status: int
    body: str
    stage: Stage
    reason: FailureReason | None = None
    routing_key: str | None = None
    token: SequenceToken | None = None

    @property
    def succeeded(self) -> bool:
        return self.reason is None

    @property
    def content_type(self) -> str:
        return "text/plain"


def _excerpt(body: bytes) -> str:
    text = body[:EXCERPT_BYTES].decode("utf-8", errors="replace")
    return text + "..." if len(body) > EXCERPT_BYTES else text


class IngestionPipeline:
    """Accumulate, verify, classify and enqueue webhook deliveries.

    Holds only the immutable secret and the injected producer, so one
    instance serves every concurrent request.
    """

    def __init__(
        self,
        secret: bytes,
        producer: QueueProducer,
        *,
        signature_header: str = SIGNATURE_HEADER,
        event_header: str = EVENT_HEADER,
        max_body_size: int | None = None,
        verify_in_thread: bool = True,
    ) -> None:
        if not secret:
            raise ValueError("A webhook secret is required")
        self._secret = secret
        self._producer = producer
        self.signature_header = signature_header
        self.event_header = event_header
        self.max_body_size = max_body_size
        self.verify_in_thread = verify_in_thread

    def _fail(self, stage: Stage, reason: FailureReason, key: str | None = None) -> IngestResult:
        WEBHOOK_REQUESTS.labels(outcome=reason.label).inc()
        return IngestResult(
            status=reason.status,
            body=reason.body,
            stage=stage,
            reason=reason,
            routing_key=key,
        )

    async def _verify(self, body: bytes, header_value: str) -> VerificationResult:
        if self.verify_in_thread:
            return await asyncio.to_thread(check, body, header_value, self._secret)
        return check(body, header_value, self._secret)

    async def handle(
        self,
        path: str,
        headers: Mapping[str, str],
        chunks: AsyncIterable[bytes],
    ) -> IngestResult:
        """Run one delivery through the pipeline.

        Cancellation (client disconnect) propagates out of the accumulation
        stage untouched, so a partial body is never verified or enqueued.
        """
        log = logger.bind(path=path)

        try:
            body = await accumulate_body(chunks, self.max_body_size)
        except BodyReadError as e:
            log.warning("Body stream failed", stage=Stage.ACCUMULATING.value, error=str(e))
            return self._fail(Stage.ACCUMULATING, FailureReason.BODY_READ_ERROR)
        except BodyTooLarge as e:
            log.warning(
                "Body exceeds limit",
                stage=Stage.ACCUMULATING.value,
                limit=e.limit,
                received=e.received,
            )
            return self._fail(Stage.ACCUMULATING, FailureReason.BODY_TOO_LARGE)
        except asyncio.CancelledError:
            log.info("Client went away before body completed", stage=Stage.ACCUMULATING.value)
            raise
        BODY_BYTES.inc(len(body))

        header_value = find_header(headers, self.signature_header)
        if header_value is None:
            log.warning(
                "Missing signature header",
                stage=Stage.VERIFYING.value,
                header=self.signature_header,
                body_excerpt=_excerpt(body),
            )
            return self._fail(Stage.VERIFYING, FailureReason.MISSING_SIGNATURE)

        result = await self._verify(body, header_value)
        if not result:
            log.warning(
                "Signature rejected",
                stage=Stage.VERIFYING.value,
                status=result.status.value,
                error=result.error,
                signature=header_value,
                body_size=len(body),
                body_excerpt=_excerpt(body),
            )
            return self._fail(Stage.VERIFYING, FailureReason.INVALID_SIGNATURE)

        payload = VerifiedPayload(body=body, event=classify(headers, self.event_header))
        key = routing_key(path, payload.event)

        try:
            token = await self._producer.produce(key.encode("utf-8"), payload.body)
        except ProduceError as e:
            log.error("Append failed", stage=Stage.ENQUEUING.value, key=key, error=str(e))
            return self._fail(Stage.ENQUEUING, FailureReason.QUEUE_WRITE_ERROR, key)

        log.debug("Delivery appended", key=key, token=str(token), size=len(body))
        WEBHOOK_REQUESTS.labels(outcome="ok").inc()
        return IngestResult(
            status=200,
            body=SUCCESS_BODY,
            stage=Stage.RESPONDING,
            routing_key=key,
            token=token,
        )
