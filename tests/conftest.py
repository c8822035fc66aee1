"""
Shared test fixtures.

- ``make_settings`` builds Settings without reading .env
- ``mongo_factory`` stands in for the pymongo client constructor
- ``routes_package`` writes a throwaway feature route package to a
  temporary directory on sys.path
"""

import sys
import textwrap
import uuid
from typing import Any, Dict, Optional

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from shopapi.src.config import Settings, clear_settings_cache
from shopapi.src.database import DatabaseConnection

from tests.fakes import FAKE_MONGO_URI, FakeMongoFactory


# ============================================================================
# Settings
# ============================================================================


@pytest.fixture
def make_settings():
    """Factory for Settings isolated from .env files."""

    def _make(**overrides: Any) -> Settings:
        values: Dict[str, Any] = {
            "environment": "development",
            "mongo_uri": None,
            "frontend_url": None,
            "stripe_webhook_secret": None,
            "metrics_enabled": True,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def mongo_factory():
    return FakeMongoFactory()


@pytest.fixture
def failing_mongo_factory():
    return FakeMongoFactory(fail_with=ServerSelectionTimeoutError("mongo.test:27017: connection refused"))


@pytest.fixture
def make_database():
    def _make(factory: FakeMongoFactory, uri: Optional[str] = FAKE_MONGO_URI) -> DatabaseConnection:
        return DatabaseConnection(uri, default_database="shop", client_factory=factory)

    return _make


# ============================================================================
# Feature route package
# ============================================================================


FEATURE_MODULE = '''
from fastapi import APIRouter, Depends, Form, HTTPException

from shopapi.src.dependencies import get_database

router = APIRouter()


@router.get("/")
async def index():
    return {{"feature": "{name}"}}
'''

EXTRA_ROUTES = {
    "products": '''

@router.get("/boom")
async def boom():
    raise RuntimeError("kaboom")


@router.get("/discontinued")
async def discontinued():
    raise HTTPException(status_code=410, detail="Product discontinued")


@router.get("/sku/{sku}")
async def by_sku(sku: str):
    raise HTTPException(status_code=404)
''',
    "cart": '''

@router.post("/items")
async def add_item(sku: str = Form(...), qty: int = Form(1)):
    return {"sku": sku, "qty": qty}
''',
    "orders": '''

@router.post("/")
async def create_order(payload: dict):
    return {"received": payload}
''',
    "users": '''

@router.get("/db")
async def which_database(db=Depends(get_database)):
    return {"database": db.name}
''',
    "payment": '''

received = []


def register_webhooks(dispatcher):
    @dispatcher.register("payment_intent.succeeded")
    async def on_succeeded(event, request):
        received.append((event.id, await request.body()))
''',
}

FEATURES = ("auth", "users", "password", "products", "orders", "cart", "chat", "payment")


@pytest.fixture
def routes_package(tmp_path, monkeypatch):
    """
    Write a feature route package and put it on sys.path.

    Returns the package name; each test gets a fresh name so modules never
    leak between tests through sys.modules.
    """
    name = f"storefront_routes_{uuid.uuid4().hex[:8]}"
    package_dir = tmp_path / name
    package_dir.mkdir()
    (package_dir / "__init__.py").write_text("")

    for feature in FEATURES:
        source = FEATURE_MODULE.format(name=feature) + EXTRA_ROUTES.get(feature, "")
        (package_dir / f"{feature}.py").write_text(textwrap.dedent(source))

    monkeypatch.syspath_prepend(str(tmp_path))
    yield name

    for module in [m for m in sys.modules if m == name or m.startswith(name + ".")]:
        del sys.modules[module]
