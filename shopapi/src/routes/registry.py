"""
Feature route capability table.

Every feature router is resolved exactly once, while the application is
being built. The outcome for each feature (mounted, or why not) is kept in
a ``CapabilityTable`` on ``app.state`` and reported by the health endpoint,
so a missing database or a broken route module is a visible state rather
than a line in the startup log.

Feature modules live in an external package (``ROUTES_PACKAGE``, default
``routes``). A module must expose ``router`` (an ``APIRouter``) and may
expose ``register_webhooks(dispatcher)`` to subscribe to Stripe events.
"""

import importlib
from types import ModuleType
from typing import Dict, List, Optional, Tuple

import structlog
from fastapi import APIRouter, FastAPI
from pydantic import BaseModel, ConfigDict, Field

from shopapi.src.config import Settings
from shopapi.src.models import FeatureStatus, FeatureSummary, UnavailableReason
from shopapi.src.webhooks.dispatcher import WebhookDispatcher

logger = structlog.get_logger(__name__)


class FeatureRoute(BaseModel):
    """Static description of one mountable feature."""
    name: str = Field(..., description="Feature name")
    prefix: str = Field(..., description="Mount prefix below the API prefix")
    module: Optional[str] = Field(
        None,
        description="Fully qualified module for built-in routes"
    )
    requires_database: bool = Field(True, description="Skipped in limited mode")
    raw_body_paths: Tuple[str, ...] = Field(
        default=(),
        description="Paths below the prefix that must receive the unparsed body"
    )

    model_config = ConfigDict(frozen=True)

    def resolve_module(self, settings: Settings) -> str:
        """Dotted module path, honouring ROUTE_MODULES overrides."""
        if self.name in settings.route_modules:
            return settings.route_modules[self.name]
        if self.module:
            return self.module
        return f"{settings.routes_package}.{self.name}"

    def mount_prefix(self, settings: Settings) -> str:
        return f"{settings.api_prefix}{self.prefix}"


# Webhook first: its raw-body route must not sit behind any feature router.
FEATURE_ROUTES: Tuple[FeatureRoute, ...] = (
    FeatureRoute(
        name="payment_webhook",
        prefix="/webhooks",
        module="shopapi.src.webhooks.stripe",
        raw_body_paths=("/stripe",),
    ),
    FeatureRoute(name="auth", prefix="/auth"),
    FeatureRoute(name="users", prefix="/users"),
    FeatureRoute(name="password", prefix="/password"),
    FeatureRoute(name="products", prefix="/products"),
    FeatureRoute(name="orders", prefix="/orders"),
    FeatureRoute(name="cart", prefix="/cart"),
    FeatureRoute(name="chat", prefix="/chat"),
    FeatureRoute(name="payment", prefix="/payment"),
)


class CapabilityTable:
    """Startup-time record of which feature routes are available."""

    def __init__(
        self,
        statuses: List[FeatureStatus],
        limited_mode: bool = False,
        raw_body_paths: Optional[List[str]] = None,
    ):
        self._statuses: Dict[str, FeatureStatus] = {s.name: s for s in statuses}
        self.limited_mode = limited_mode
        self.raw_body_paths: List[str] = list(raw_body_paths or [])

    def __iter__(self):
        return iter(self._statuses.values())

    def __len__(self) -> int:
        return len(self._statuses)

    def get(self, name: str) -> Optional[FeatureStatus]:
        return self._statuses.get(name)

    def is_available(self, name: str) -> bool:
        status = self._statuses.get(name)
        return status is not None and status.available

    @property
    def available(self) -> List[str]:
        return [s.name for s in self if s.available]

    @property
    def unavailable(self) -> List[str]:
        return [s.name for s in self if not s.available]

    def summary(self) -> Dict[str, FeatureSummary]:
        """Per-feature availability as reported by the health endpoint."""
        return {
            s.name: FeatureSummary(available=s.available, reason=s.reason)
            for s in self
        }


def _import_feature_module(module_path: str) -> Tuple[Optional[ModuleType], Optional[UnavailableReason]]:
    """Import a feature module, classifying failures."""
    try:
        return importlib.import_module(module_path), None
    except ModuleNotFoundError as e:
        # Distinguish "the module is absent" from "it imports something absent".
        missing = e.name or ""
        if missing and (module_path == missing or module_path.startswith(missing + ".")):
            logger.error("feature_route_module_missing", module=module_path)
            return None, UnavailableReason.MODULE_NOT_FOUND
        logger.error("feature_route_import_failed", module=module_path, error=str(e), exc_info=True)
        return None, UnavailableReason.IMPORT_FAILED
    except Exception as e:
        logger.error("feature_route_import_failed", module=module_path, error=str(e), exc_info=True)
        return None, UnavailableReason.IMPORT_FAILED


def load_feature_routes(
    app: FastAPI,
    settings: Settings,
    dispatcher: WebhookDispatcher,
    feature_routes: Tuple[FeatureRoute, ...] = FEATURE_ROUTES,
) -> CapabilityTable:
    """
    Resolve and mount every feature router.

    Without MONGO_URI the application runs in limited mode: features that
    need persistence are skipped. Import failures are recorded and logged
    but never stop startup.

    Args:
        app: Application to mount routers on
        settings: Application settings
        dispatcher: Webhook dispatcher offered to feature modules
        feature_routes: Feature table, overridable for tests

    Returns:
        The capability table
    """
    limited_mode = not settings.mongo_uri_set
    statuses: List[FeatureStatus] = []
    raw_body_paths: List[str] = []

    if limited_mode:
        logger.warning(
            "limited_mode",
            reason="MONGO_URI not configured",
            skipped=[r.name for r in feature_routes if r.requires_database]
        )

    for route in feature_routes:
        module_path = route.resolve_module(settings)
        prefix = route.mount_prefix(settings)

        def record(available: bool, reason: Optional[UnavailableReason] = None) -> None:
            statuses.append(FeatureStatus(
                name=route.name,
                prefix=prefix,
                module=module_path,
                available=available,
                reason=reason,
            ))

        if limited_mode and route.requires_database:
            record(False, UnavailableReason.DATABASE_NOT_CONFIGURED)
            continue

        module, reason = _import_feature_module(module_path)
        if module is None:
            record(False, reason)
            continue

        router = getattr(module, "router", None)
        if not isinstance(router, APIRouter):
            logger.error("feature_route_invalid_module", module=module_path, reason="no APIRouter named 'router'")
            record(False, UnavailableReason.INVALID_MODULE)
            continue

        app.include_router(router, prefix=prefix)

        register_webhooks = getattr(module, "register_webhooks", None)
        if callable(register_webhooks):
            register_webhooks(dispatcher)

        raw_body_paths.extend(f"{prefix}{path}" for path in route.raw_body_paths)
        record(True)
        logger.info("feature_route_mounted", feature=route.name, prefix=prefix, module=module_path)

    table = CapabilityTable(statuses, limited_mode=limited_mode, raw_body_paths=raw_body_paths)

    if table.unavailable and not limited_mode:
        logger.error("feature_routes_partially_loaded", available=table.available, unavailable=table.unavailable)
    elif not limited_mode:
        logger.info("feature_routes_loaded", available=table.available)

    return table
