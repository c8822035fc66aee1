"""
Health and smoke-test endpoints.

Neither endpoint touches the database; the health check only reports
whether a connection string is configured and which feature routes
mounted at startup.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from shopapi.src.config import Settings
from shopapi.src.dependencies import get_app_settings, get_capabilities
from shopapi.src.models import HealthResponse, SmokeTestResponse
from shopapi.src.routes.registry import CapabilityTable

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    settings: Settings = Depends(get_app_settings),
    capabilities: CapabilityTable = Depends(get_capabilities),
) -> HealthResponse:
    """
    Health check endpoint.

    Returns basic process status without checking dependencies.
    Use for container and load-balancer health checks.
    """
    return HealthResponse(
        timestamp=datetime.now(timezone.utc),
        environment=settings.environment,
        mongo_uri_set=settings.mongo_uri_set,
        limited_mode=capabilities.limited_mode,
        features=capabilities.summary(),
    )


@router.get("/test", response_model=SmokeTestResponse)
async def smoke_test() -> SmokeTestResponse:
    """Cheap endpoint for checking the deployment answers at all."""
    return SmokeTestResponse(timestamp=datetime.now(timezone.utc))
