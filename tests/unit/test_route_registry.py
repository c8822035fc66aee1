"""
Unit tests for feature route resolution and the capability table.

Tests cover:
- Limited mode when no MONGO_URI is configured
- Mounting every feature from the route package
- Classified failures: missing module, broken import, no router
- ROUTE_MODULES overrides
- Webhook registration hook and raw-body paths
"""

import sys

from fastapi import FastAPI

from shopapi.src.models import UnavailableReason
from shopapi.src.routes.registry import FEATURE_ROUTES, FeatureRoute, load_feature_routes
from shopapi.src.webhooks.dispatcher import WebhookDispatcher
from tests.fakes import FAKE_MONGO_URI


def mounted_paths(app: FastAPI):
    return {route.path for route in app.routes}


class TestFeatureTable:

    def test_all_features_declared(self):
        names = [route.name for route in FEATURE_ROUTES]
        assert names == [
            "payment_webhook", "auth", "users", "password",
            "products", "orders", "cart", "chat", "payment",
        ]

    def test_module_resolution(self, make_settings):
        settings = make_settings(routes_package="shop_routes", route_modules={"chat": "realtime.chat"})
        by_name = {route.name: route for route in FEATURE_ROUTES}

        assert by_name["auth"].resolve_module(settings) == "shop_routes.auth"
        assert by_name["chat"].resolve_module(settings) == "realtime.chat"
        assert by_name["payment_webhook"].resolve_module(settings) == "shopapi.src.webhooks.stripe"
        assert by_name["orders"].mount_prefix(settings) == "/api/orders"


class TestLimitedMode:

    def test_everything_skipped_without_database(self, make_settings, routes_package):
        app = FastAPI()
        settings = make_settings(mongo_uri=None, routes_package=routes_package)

        table = load_feature_routes(app, settings, WebhookDispatcher())

        assert table.limited_mode is True
        assert table.available == []
        assert len(table) == len(FEATURE_ROUTES)
        assert all(s.reason == UnavailableReason.DATABASE_NOT_CONFIGURED.value for s in table)
        assert not any(path.startswith("/api/") for path in mounted_paths(app))
        # Nothing was even imported.
        assert f"{routes_package}.auth" not in sys.modules

    def test_database_free_feature_still_mounts(self, make_settings, routes_package):
        app = FastAPI()
        settings = make_settings(mongo_uri=None, routes_package=routes_package)
        catalog = FeatureRoute(name="products", prefix="/products", requires_database=False)

        table = load_feature_routes(app, settings, WebhookDispatcher(), feature_routes=(catalog,))

        assert table.is_available("products")
        assert "/api/products/" in mounted_paths(app)


class TestFullMode:

    def test_all_features_mount(self, make_settings, routes_package):
        app = FastAPI()
        settings = make_settings(mongo_uri=FAKE_MONGO_URI, routes_package=routes_package)

        table = load_feature_routes(app, settings, WebhookDispatcher())

        assert table.limited_mode is False
        assert table.unavailable == []
        paths = mounted_paths(app)
        for prefix in ("auth", "users", "password", "products", "orders", "cart", "chat", "payment"):
            assert f"/api/{prefix}/" in paths
        assert "/api/webhooks/stripe" in paths

    def test_raw_body_paths_reported(self, make_settings, routes_package):
        settings = make_settings(mongo_uri=FAKE_MONGO_URI, routes_package=routes_package)

        table = load_feature_routes(FastAPI(), settings, WebhookDispatcher())

        assert table.raw_body_paths == ["/api/webhooks/stripe"]

    def test_register_webhooks_hook_called(self, make_settings, routes_package):
        settings = make_settings(mongo_uri=FAKE_MONGO_URI, routes_package=routes_package)
        dispatcher = WebhookDispatcher()

        load_feature_routes(FastAPI(), settings, dispatcher)

        assert dispatcher.event_types == ["payment_intent.succeeded"]

    def test_summary(self, make_settings, routes_package):
        settings = make_settings(mongo_uri=FAKE_MONGO_URI, routes_package=routes_package)

        summary = load_feature_routes(FastAPI(), settings, WebhookDispatcher()).summary()

        assert summary["cart"].available is True
        assert summary["cart"].reason is None


class TestFailures:

    def test_missing_route_package(self, make_settings):
        app = FastAPI()
        settings = make_settings(mongo_uri=FAKE_MONGO_URI, routes_package="no_such_routes_package")

        table = load_feature_routes(app, settings, WebhookDispatcher())

        assert table.available == ["payment_webhook"]
        assert table.get("auth").reason == UnavailableReason.MODULE_NOT_FOUND.value

    def test_one_broken_module_does_not_stop_others(self, make_settings, routes_package, tmp_path):
        (tmp_path / routes_package / "chat.py").write_text("import websocket_transport_that_is_not_installed\n")
        settings = make_settings(mongo_uri=FAKE_MONGO_URI, routes_package=routes_package)

        table = load_feature_routes(FastAPI(), settings, WebhookDispatcher())

        assert table.get("chat").available is False
        assert table.get("chat").reason == UnavailableReason.IMPORT_FAILED.value
        assert table.is_available("orders")
        assert len(table.available) == len(FEATURE_ROUTES) - 1

    def test_module_raising_on_import(self, make_settings, routes_package, tmp_path):
        (tmp_path / routes_package / "cart.py").write_text("raise RuntimeError('bad config')\n")
        settings = make_settings(mongo_uri=FAKE_MONGO_URI, routes_package=routes_package)

        table = load_feature_routes(FastAPI(), settings, WebhookDispatcher())

        assert table.get("cart").reason == UnavailableReason.IMPORT_FAILED.value

    def test_module_without_router(self, make_settings, routes_package, tmp_path):
        (tmp_path / routes_package / "password.py").write_text("routes = []\n")
        settings = make_settings(mongo_uri=FAKE_MONGO_URI, routes_package=routes_package)

        table = load_feature_routes(FastAPI(), settings, WebhookDispatcher())

        assert table.get("password").reason == UnavailableReason.INVALID_MODULE.value

    def test_override_points_elsewhere(self, make_settings, routes_package):
        settings = make_settings(
            mongo_uri=FAKE_MONGO_URI,
            routes_package=routes_package,
            route_modules={"chat": f"{routes_package}.cart"},
        )
        app = FastAPI()

        table = load_feature_routes(app, settings, WebhookDispatcher())

        assert table.get("chat").module == f"{routes_package}.cart"
        assert table.is_available("chat")
