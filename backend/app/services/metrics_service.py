"""Shop metrics orchestration.

WHAT:
    Resolves the shop, computes the reporting window, fetches orders with
    refunds from Shopify, reduces them, and records a `metrics_fetch` audit
    event.

WHY:
    The dashboard always receives a summary: when the order listing fails
    the request degrades to an all-zero summary flagged `degraded=True`
    instead of an error response.

FLOW:
    NotStarted -> FetchingOrders -> Reducing -> Done
                               \\-> FetchFailed -> FallbackZero

REFERENCES:
    - app/services/shopify_client.py (Order Fetcher)
    - app/services/metrics_reducer.py (Metrics Reducer)
    - app/routers/shops.py (HTTP surface)
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.errors import OrderFetchFailed
from app.models import AuditActionEnum
from app.schemas import MetricsSummary
from app.security import redact_secrets
from app.services.audit_service import record_audit_event
from app.services.metrics_reducer import reduce_orders
from app.services.shop_service import get_access_token, get_shop
from app.services.shopify_client import ShopifyClient
from app.utils.dates import DEFAULT_BUSINESS_TIMEZONE, last_30_days_range

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_CURRENCY = "CAD"


def zero_metrics(
    shop_id: str,
    from_date: str,
    to_date: str,
    currency: str = DEFAULT_FALLBACK_CURRENCY,
) -> MetricsSummary:
    """All-zero summary returned when Shopify cannot be reached."""
    return MetricsSummary(
        shop_id=shop_id,
        from_date=from_date,
        to_date=to_date,
        orders_count=0,
        gross_revenue=0,
        currency=currency,
        avg_order_value=0,
        refunded_amount=0,
        net_revenue=0,
        degraded=True,
    )


async def get_shop_metrics(
    db: Session,
    shop_id: str,
    client_factory: Callable[[str, str], ShopifyClient],
    *,
    tz_name: str = DEFAULT_BUSINESS_TIMEZONE,
    fallback_currency: str = DEFAULT_FALLBACK_CURRENCY,
    now: Optional[datetime] = None,
) -> MetricsSummary:
    """Compute the rolling 30-day summary for a connected shop.

    Args:
        db: Database session
        shop_id: Shop identifier (UUID string)
        client_factory: Builds a ShopifyClient from (shop_domain, access_token)
        tz_name: Business timezone used to decide what "today" is
        fallback_currency: Currency reported with no orders or on fallback
        now: Reference instant (tests pin it)

    Raises:
        StoreNotFound: If no shop exists for `shop_id`.
    """
    shop = get_shop(db, shop_id)
    shop_key = str(shop.id)

    from_date, to_date = last_30_days_range(tz_name, now=now)
    logger.info(
        "[METRICS] Fetching metrics for shop %s (%s -> %s)", shop_key, from_date, to_date
    )

    client = client_factory(shop.shop_domain, get_access_token(shop))

    try:
        orders = await client.fetch_orders(from_date, to_date)
    except OrderFetchFailed as e:
        logger.error(
            "[METRICS] Failed to fetch data from Shopify for shop %s: %s",
            shop_key,
            redact_secrets({"message": e.message, "status": e.status_code, "data": e.body}),
        )
        summary = zero_metrics(shop_key, from_date, to_date, currency=fallback_currency)
    else:
        totals = reduce_orders(orders, fallback_currency=fallback_currency)
        summary = MetricsSummary.from_totals(shop_key, from_date, to_date, totals)

    record_audit_event(
        db,
        AuditActionEnum.metrics_fetch,
        shop_id=shop.id,
        meta={
            "fromDate": from_date,
            "toDate": to_date,
            "ordersCount": summary.orders_count,
            "degraded": summary.degraded,
        },
    )

    logger.info(
        "[METRICS] Shop %s: %d orders, gross %.2f %s%s",
        shop_key,
        summary.orders_count,
        summary.gross_revenue,
        summary.currency,
        " (degraded)" if summary.degraded else "",
    )
    return summary

