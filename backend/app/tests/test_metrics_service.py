"""Tests for metrics orchestration.

WHAT: Window computation, fetch, reduction, zero fallback and audit.
WHY: A Shopify outage must yield a degraded all-zero summary, not an error.
"""

import uuid
from datetime import datetime, timezone

import httpx
import pytest

from app.errors import StoreNotFound
from app.models import AuditActionEnum
from app.services.metrics_service import get_shop_metrics, zero_metrics

NOW = datetime(2026, 10, 18, 10, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_summary_from_orders_and_refunds(test_db_session, test_shop, client_factory, fake_shopify, audit_events):
    fake_shopify.add_order("1001", "100.00")
    fake_shopify.add_order("1002", "150.00", refunds=["25.00"])

    summary = await get_shop_metrics(test_db_session, str(test_shop.id), client_factory, now=NOW)

    assert summary.shop_id == str(test_shop.id)
    assert summary.from_date == "2026-09-18T20:00:00.000Z"
    assert summary.to_date == "2026-10-18T19:59:59.999Z"
    assert summary.orders_count == 2
    assert summary.gross_revenue == 250.0
    assert summary.currency == "USD"
    assert summary.avg_order_value == 125.0
    assert summary.refunded_amount == 25.0
    assert summary.net_revenue == 225.0
    assert summary.degraded is False

    events = audit_events(AuditActionEnum.metrics_fetch)
    assert len(events) == 1
    assert events[0].shop_id == test_shop.id
    assert events[0].meta == {
        "fromDate": "2026-09-18T20:00:00.000Z",
        "toDate": "2026-10-18T19:59:59.999Z",
        "ordersCount": 2,
        "degraded": False,
    }


@pytest.mark.asyncio
async def test_client_receives_decrypted_token_and_window(test_db_session, test_shop, fake_shopify):
    seen = {}

    def factory(shop_domain, access_token):
        from app.services.shopify_client import ShopifyClient

        seen["args"] = (shop_domain, access_token)
        return ShopifyClient(shop_domain, access_token, transport=fake_shopify.transport)

    await get_shop_metrics(test_db_session, str(test_shop.id), factory, tz_name="UTC", now=NOW)

    assert seen["args"] == (test_shop.shop_domain, "shpat_test_token_123")
    listing = fake_shopify.requests[0]
    assert listing.url.params["created_at_min"] == "2026-09-19T00:00:00.000Z"
    assert listing.url.params["created_at_max"] == "2026-10-18T23:59:59.999Z"


@pytest.mark.asyncio
async def test_listing_failure_falls_back_to_zero(test_db_session, test_shop, client_factory, fake_shopify, audit_events):
    fake_shopify.orders_status = 500

    summary = await get_shop_metrics(test_db_session, str(test_shop.id), client_factory, now=NOW)

    assert summary.orders_count == 0
    assert summary.gross_revenue == 0
    assert summary.net_revenue == 0
    assert summary.currency == "CAD"
    assert summary.degraded is True
    assert summary.from_date == "2026-09-18T20:00:00.000Z"

    events = audit_events(AuditActionEnum.metrics_fetch)
    assert len(events) == 1
    assert events[0].meta["degraded"] is True
    assert events[0].meta["ordersCount"] == 0


@pytest.mark.asyncio
async def test_network_failure_falls_back_to_zero(test_db_session, test_shop, client_factory, fake_shopify):
    fake_shopify.orders_error = httpx.ConnectError("dns failure")

    summary = await get_shop_metrics(
        test_db_session, str(test_shop.id), client_factory, fallback_currency="AED", now=NOW
    )

    assert summary.degraded is True
    assert summary.currency == "AED"


@pytest.mark.asyncio
async def test_malformed_listing_falls_back_to_zero(test_db_session, test_shop, client_factory, fake_shopify):
    fake_shopify.orders = [None]

    summary = await get_shop_metrics(test_db_session, str(test_shop.id), client_factory, now=NOW)

    assert summary.degraded is True
    assert summary.orders_count == 0


@pytest.mark.asyncio
async def test_huge_amounts_still_produce_a_summary(test_db_session, test_shop, client_factory, fake_shopify):
    fake_shopify.add_order("1001", "1e30", refunds=["1E+29"])

    summary = await get_shop_metrics(test_db_session, str(test_shop.id), client_factory, now=NOW)

    assert summary.degraded is False
    assert summary.gross_revenue == 1e30
    assert summary.refunded_amount == 1e29
    assert summary.net_revenue == 9e29


@pytest.mark.asyncio
async def test_refund_failure_still_reports_orders(test_db_session, test_shop, client_factory, fake_shopify):
    fake_shopify.add_order("1001", "100.00", refunds=["40.00"])
    fake_shopify.add_order("1002", "50.00", refunds=["10.00"])
    fake_shopify.failing_refunds["1001"] = 500

    summary = await get_shop_metrics(test_db_session, str(test_shop.id), client_factory, now=NOW)

    assert summary.degraded is False
    assert summary.orders_count == 2
    assert summary.gross_revenue == 150.0
    assert summary.refunded_amount == 10.0
    assert summary.net_revenue == 140.0


@pytest.mark.asyncio
async def test_unknown_shop_raises_without_calling_shopify(test_db_session, client_factory, fake_shopify, audit_events):
    with pytest.raises(StoreNotFound):
        await get_shop_metrics(test_db_session, str(uuid.uuid4()), client_factory, now=NOW)

    assert fake_shopify.requests == []
    assert audit_events() == []


def test_zero_metrics_shape():
    summary = zero_metrics("shop-1", "a", "b", currency="USD")

    assert summary.model_dump(by_alias=True) == {
        "shopId": "shop-1",
        "fromDate": "a",
        "toDate": "b",
        "ordersCount": 0,
        "grossRevenue": 0.0,
        "currency": "USD",
        "avgOrderValue": 0.0,
        "refundedAmount": 0.0,
        "netRevenue": 0.0,
        "degraded": True,
    }
