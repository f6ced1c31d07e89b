"""Server."""

from .app import GatewayServer, WebhookHandler, access_log_middleware, create_app, open_producer

__all__ = [
    "GatewayServer",
    "WebhookHandler",
    "access_log_middleware",
    "create_app",
    "open_producer",
]
