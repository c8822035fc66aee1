"""
Response envelopes shared by the entrypoint routes and error handlers.

The JSON field names (mongoUriSet, limitedMode, ...) follow what the
storefront frontend already reads, so the models serialize by alias.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Error envelope returned for every failed request."""
    error: str = Field(
        ...,
        description="Short error summary"
    )
    message: Optional[str] = Field(
        None,
        description="Error detail, withheld in production"
    )
    path: Optional[str] = Field(
        None,
        description="Requested path (404 only)"
    )
    details: Optional[Any] = Field(
        None,
        description="Validation error details"
    )

    def render(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)

    model_config = {
        "json_schema_extra": {
            "example": {
                "error": "Route not found",
                "path": "/api/unknown"
            }
        }
    }


class UnavailableReason(str, Enum):
    """Why a feature route did not mount."""
    DATABASE_NOT_CONFIGURED = "database_not_configured"
    MODULE_NOT_FOUND = "module_not_found"
    IMPORT_FAILED = "import_failed"
    INVALID_MODULE = "invalid_module"


class FeatureStatus(BaseModel):
    """Outcome of resolving one feature route at startup."""
    name: str = Field(..., description="Feature name")
    prefix: str = Field(..., description="Mount prefix")
    module: str = Field(..., description="Dotted module path")
    available: bool = Field(..., description="Whether the router is mounted")
    reason: Optional[UnavailableReason] = Field(
        None,
        description="Why the feature is unavailable"
    )

    model_config = ConfigDict(use_enum_values=True)


class FeatureSummary(BaseModel):
    """Per-feature entry reported by the health endpoint."""
    available: bool
    reason: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check payload. Never requires the database."""
    status: str = Field("OK", description="Process status")
    timestamp: datetime = Field(..., description="Server time (UTC)")
    environment: str = Field(..., description="Runtime environment")
    message: str = Field("Server is running", description="Status message")
    mongo_uri_set: bool = Field(
        ...,
        alias="mongoUriSet",
        description="Whether a MongoDB connection string is configured"
    )
    limited_mode: bool = Field(
        ...,
        alias="limitedMode",
        description="True when feature routes were skipped for lack of a database"
    )
    features: Dict[str, FeatureSummary] = Field(
        default_factory=dict,
        description="Feature route availability"
    )

    model_config = ConfigDict(populate_by_name=True)


class SmokeTestResponse(BaseModel):
    """Payload of the limited-mode smoke test endpoint."""
    message: str = "Test endpoint working"
    timestamp: datetime


class WebhookAck(BaseModel):
    """Acknowledgement returned to the webhook provider."""
    received: bool = True
    handled: bool = Field(
        False,
        description="Whether a registered handler processed the event"
    )
