"""Pytest configuration for app integration tests

WHAT: Provides shared fixtures for HTTP endpoint and service-level tests
WHY: Ensures consistent test setup, database isolation, and a fake Shopify API
REFERENCES:
    - app/main.py: FastAPI application
    - app/database.py: Database configuration
    - app/deps.py: Dependency injection (settings, Shopify client factory)
"""

import pytest
import os
from typing import Any, Callable, Dict, Generator, List, Optional

import httpx
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

# Ensure backend is in path
import sys
from pathlib import Path
BACKEND_ROOT = Path(__file__).resolve().parents[2]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

# Set test environment
# Must be URL-safe base64-encoded 32-byte string (app.security validates at import time)
os.environ.setdefault("TOKEN_ENCRYPTION_KEY", "MDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDA=")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SHOPIFY_API_KEY", "test-api-key")
os.environ.setdefault("SHOPIFY_API_SECRET", "test-api-secret")
os.environ.setdefault("APP_URL", "https://api.example.test")
os.environ.setdefault("FRONTEND_URL", "https://dashboard.example.test")


SHOP_DOMAIN = "my-store.myshopify.com"
API_PREFIX = "/admin/api/2023-10"


# ============================================================================
# Fake Shopify API
# ============================================================================

class FakeShopify:
    """In-memory Shopify Admin REST API served through httpx.MockTransport.

    Orders are returned from orders.json; refunds per order id from
    orders/{id}/refunds.json. Individual endpoints can be made to fail.
    """

    def __init__(self):
        self.orders: List[Dict[str, Any]] = []
        self.refunds: Dict[str, List[Dict[str, Any]]] = {}
        self.orders_status: int = 200
        self.orders_error: Optional[Exception] = None
        self.failing_refunds: Dict[str, Any] = {}
        self.requests: List[httpx.Request] = []

    def add_order(
        self,
        order_id: str,
        total_price: str,
        currency: str = "USD",
        refunds: Optional[List[str]] = None,
    ) -> None:
        self.orders.append({
            "id": order_id,
            "created_at": "2026-10-01T10:00:00+04:00",
            "total_price": total_price,
            "currency": currency,
            "financial_status": "paid",
        })
        self.refunds[order_id] = [
            refund_payload(f"{order_id}-r{i}", amount, currency)
            for i, amount in enumerate(refunds or [])
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == f"{API_PREFIX}/orders.json":
            if self.orders_error is not None:
                raise self.orders_error
            if self.orders_status >= 400:
                return httpx.Response(self.orders_status, json={"errors": "Service unavailable"})
            return httpx.Response(200, json={"orders": self.orders})

        if path.startswith(f"{API_PREFIX}/orders/") and path.endswith("/refunds.json"):
            order_id = path[len(f"{API_PREFIX}/orders/"):-len("/refunds.json")]
            failure = self.failing_refunds.get(order_id)
            if isinstance(failure, Exception):
                raise failure
            if failure is not None:
                return httpx.Response(failure, json={"errors": "Not Found"})
            return httpx.Response(200, json={"refunds": self.refunds.get(order_id, [])})

        return httpx.Response(404, json={"errors": "Not Found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def refund_payload(refund_id: str, amount: str, currency: str = "USD") -> Dict[str, Any]:
    return {
        "id": refund_id,
        "created_at": "2026-10-02T10:00:00+04:00",
        "total_refunded_set": {
            "shop_money": {"amount": amount, "currency_code": currency},
            "presentment_money": {"amount": amount, "currency_code": currency},
        },
    }


@pytest.fixture
def fake_shopify() -> FakeShopify:
    return FakeShopify()


@pytest.fixture
def client_factory(fake_shopify) -> Callable:
    """ShopifyClient factory wired to the fake Shopify API."""
    from app.services.shopify_client import ShopifyClient

    def factory(shop_domain: str, access_token: str) -> ShopifyClient:
        return ShopifyClient(shop_domain, access_token, transport=fake_shopify.transport)

    return factory


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def test_db_engine():
    """Create in-memory test database engine."""
    # StaticPool shares the single in-memory connection across threads
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    from app.database import Base
    Base.metadata.create_all(bind=engine)

    yield engine

    # Cleanup
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def test_db_session(test_db_engine) -> Generator[Session, None, None]:
    """Create test database session with rollback."""
    SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine
    )

    session = SessionLocal()
    yield session
    session.rollback()
    session.close()


# ============================================================================
# Application & Client Fixtures
# ============================================================================

@pytest.fixture
def app(test_db_session, client_factory):
    """Create FastAPI test application."""
    from app.main import create_app
    from app.database import get_db
    from app.deps import get_shopify_client_factory

    test_app = create_app()

    def override_get_db():
        yield test_db_session

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[get_shopify_client_factory] = lambda: client_factory

    return test_app


@pytest.fixture
def client(app) -> TestClient:
    """Create TestClient for HTTP testing (redirects are not followed)."""
    return TestClient(app, follow_redirects=False)


# ============================================================================
# Model Fixtures
# ============================================================================

@pytest.fixture
def test_shop(test_db_session):
    """Create a connected shop with an encrypted token."""
    from app.services.shop_service import upsert_shop

    return upsert_shop(
        test_db_session,
        SHOP_DOMAIN,
        access_token="shpat_test_token_123",
        scope="read_orders,read_products,read_customers",
    )


@pytest.fixture
def audit_events(test_db_session) -> Callable[..., list]:
    """Return audit rows, optionally filtered by action."""
    from app.models import AuditLog

    def _events(action=None):
        query = test_db_session.query(AuditLog)
        if action is not None:
            query = query.filter(AuditLog.action == action)
        return query.order_by(AuditLog.created_at).all()

    return _events


# ============================================================================
# Notes
# ============================================================================
#
# USAGE:
#
# # HTTP test against the fake Shopify API
# def test_metrics(client, test_shop, fake_shopify):
#     fake_shopify.add_order("1", "100.00")
#     response = client.get(f"/shops/{test_shop.id}/metrics")
#     assert response.json()["grossRevenue"] == 100.0
#
# # Service test
# async def test_service(test_db_session, test_shop, client_factory):
#     summary = await get_shop_metrics(test_db_session, str(test_shop.id), client_factory)
#
# ============================================================================