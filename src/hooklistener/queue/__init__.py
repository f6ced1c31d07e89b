"""Append-only log producer."""

from .producer import (
    DEFAULT_TABLE,
    ProduceError,
    QueueProducer,
    SequenceToken,
    StartupError,
    describe_dsn,
)

__all__ = [
    "QueueProducer",
    "SequenceToken",
    "ProduceError",
    "StartupError",
    "DEFAULT_TABLE",
    "describe_dsn",
]
