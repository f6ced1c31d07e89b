"""Ingestion."""

from .body import BodyReadError, BodyTooLarge, accumulate_body
from .pipeline import (
    SUCCESS_BODY,
    FailureReason,
    IngestionPipeline,
    IngestResult,
    Stage,
    VerifiedPayload,
)

__all__ = [
    # Body
    "accumulate_body",
    "BodyReadError",
    "BodyTooLarge",
    # Pipeline
    "IngestionPipeline",
    "IngestResult",
    "VerifiedPayload",
    "FailureReason",
    "Stage",
    "SUCCESS_BODY",
]
