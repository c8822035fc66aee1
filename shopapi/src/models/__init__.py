"""Data models for the FastAPI service.

This package contains Pydantic models for response envelopes and the
startup capability table.
"""

from shopapi.src.models.common import (
    ErrorResponse,
    FeatureStatus,
    FeatureSummary,
    HealthResponse,
    SmokeTestResponse,
    UnavailableReason,
    WebhookAck,
)

__all__ = [
    "ErrorResponse",
    "FeatureStatus",
    "FeatureSummary",
    "HealthResponse",
    "SmokeTestResponse",
    "UnavailableReason",
    "WebhookAck",
]
