"""HTTP surface for the webhook listener and the server lifecycle around it."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from time import monotonic
from typing import TYPE_CHECKING

import structlog
from aiohttp import web
from aiohttp.http_exceptions import HttpProcessingError

from hooklistener.core.config import GatewayConfig
from hooklistener.ingest.body import BodyReadError
from hooklistener.ingest.pipeline import IngestionPipeline
from hooklistener.observability.metrics import (
    REQUEST_DURATION,
    generate_metrics,
    get_content_type,
)
from hooklistener.queue.producer import QueueProducer

if TYPE_CHECKING:
    from aiohttp.typedefs import Handler

logger = structlog.get_logger()


async def _iter_body(request: web.Request) -> AsyncIterator[bytes]:
    """Yield body chunks as they arrive, mapping transport failures to BodyReadError."""
    try:
        async for chunk in request.content.iter_any():
            yield chunk
    except (ConnectionError, HttpProcessingError) as e:
        raise BodyReadError(str(e) or type(e).__name__) from e


@web.middleware
async def access_log_middleware(
    request: web.Request,
    handler: Handler,
) -> web.StreamResponse:
    """Log one line per request with status and duration."""
    started = monotonic()
    status = 500
    try:
        response = await handler(request)
        status = response.status
        return response
    except web.HTTPException as e:
        status = e.status
        raise
    except asyncio.CancelledError:
        status = 499
        raise
    finally:
        logger.info(
            "HTTP request",
            method=request.method,
            path=request.path,
            status=status,
            duration_ms=round((monotonic() - started) * 1000, 2),
            peer=request.remote,
        )


class WebhookHandler:
    """Routes webhook deliveries into the ingestion pipeline."""

    def __init__(
        self,
        pipeline: IngestionPipeline,
        route_prefix: str = "gh",
        producer: QueueProducer | None = None,
    ) -> None:
        self.pipeline = pipeline
        self.route_prefix = route_prefix.strip("/")
        self.producer = producer

    def register_routes(self, app: web.Application) -> None:
        app.router.add_post(f"/{self.route_prefix}/{{path:.*}}", self.handle_ingest)
        app.router.add_get("/health", self.handle_health)
        app.router.add_get("/metrics", self.handle_metrics)

    async def handle_ingest(self, request: web.Request) -> web.Response:
        started = monotonic()
        result = await self.pipeline.handle(
            request.match_info["path"],
            request.headers,
            _iter_body(request),
        )
        REQUEST_DURATION.observe(monotonic() - started)
        return web.Response(
            status=result.status,
            text=result.body,
            content_type=result.content_type,
        )

    async def handle_health(self, request: web.Request) -> web.Response:
        body: dict[str, object] = {"status": "healthy"}
        if self.producer is not None:
            body["writes_in_flight"] = self.producer.in_flight
            body["write_capacity"] = self.producer.capacity
        return web.json_response(body)

    async def handle_metrics(self, request: web.Request) -> web.Response:
        content_type = get_content_type()
        return web.Response(
            body=generate_metrics(),
            headers={"Content-Type": content_type},
        )


def create_app(
    pipeline: IngestionPipeline,
    route_prefix: str = "gh",
    producer: QueueProducer | None = None,
) -> web.Application:
    """Build the aiohttp application serving the ingestion route."""
    app = web.Application(middlewares=[access_log_middleware])
    WebhookHandler(pipeline, route_prefix, producer).register_routes(app)
    return app


ProducerFactory = Callable[[GatewayConfig], Awaitable[QueueProducer]]


async def open_producer(config: GatewayConfig) -> QueueProducer:
    return await QueueProducer.open(
        config.database_url,
        table=config.queue_table,
        max_in_flight=config.max_in_flight_writes,
        connect_timeout=config.connect_timeout,
    )


class GatewayServer:
    """Owns the log producer and the HTTP site for one process."""

    def __init__(
        self,
        config: GatewayConfig,
        producer_factory: ProducerFactory = open_producer,
    ) -> None:
        self.config = config
        self._producer_factory = producer_factory
        self._producer: QueueProducer | None = None
        self._runner: web.AppRunner | None = None
        self.app: web.Application | None = None

    async def start(self) -> None:
        """Provision the log, then start serving.

        Raises:
            StartupError: If the log cannot be reached or provisioned. Nothing
                is bound in that case.
        """
        self._producer = await self._producer_factory(self.config)

        pipeline = IngestionPipeline(
            self.config.secret_bytes,
            self._producer,
            signature_header=self.config.signature_header,
            event_header=self.config.event_header,
            max_body_size=self.config.max_body_size,
            verify_in_thread=self.config.verify_in_thread,
        )
        self.app = create_app(pipeline, self.config.normalized_prefix, self._producer)

        self._runner = web.AppRunner(self.app, access_log=None)
        await self._runner.setup()

        host, port = self._parse_bind(self.config.bind)
        site = web.TCPSite(self._runner, host, port)
        await site.start()
        logger.info(
            "Webhook listener started",
            host=host,
            port=port,
            route=f"/{self.config.normalized_prefix}/{{path}}",
            write_capacity=self._producer.capacity,
        )

    def _parse_bind(self, bind: str) -> tuple[str, int]:
        """Parse bind address into host and port."""
        if ":" in bind:
            host, port = bind.rsplit(":", 1)
            return host.strip("[]"), int(port)
        return "0.0.0.0", int(bind)

    async def stop(self) -> None:
        """Stop serving, then release the log connection."""
        logger.info("Stopping webhook listener...")
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        if self._producer:
            await self._producer.close()
            self._producer = None
        logger.info("Webhook listener stopped")
