"""Feature route resolution and the startup capability table."""

from shopapi.src.routes.registry import (
    FEATURE_ROUTES,
    CapabilityTable,
    FeatureRoute,
    load_feature_routes,
)

__all__ = [
    "FEATURE_ROUTES",
    "CapabilityTable",
    "FeatureRoute",
    "load_feature_routes",
]
