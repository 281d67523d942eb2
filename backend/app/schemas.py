"""Pydantic schemas for request/response payloads."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .services.metrics_reducer import OrderTotals


class CamelModel(BaseModel):
    """Base for payloads exchanged with the dashboard frontend (camelCase JSON)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OAuthStartRequest(CamelModel):
    """Payload for starting the Shopify OAuth flow."""

    shop_domain: Optional[str] = Field(
        default=None,
        description="Shop domain as typed by the merchant",
        examples=["my-store", "https://my-store.myshopify.com/"],
    )


class OAuthStartResponse(CamelModel):
    """Shopify consent URL the browser should be sent to."""

    oauth_url: str


class MetricsSummary(CamelModel):
    """Rolling analytics summary for one shop.

    `degraded` is True when Shopify could not be reached and every figure
    is the zero fallback rather than a real measurement.
    """

    shop_id: str
    from_date: str = Field(description="Window start (UTC, inclusive)")
    to_date: str = Field(description="Window end (UTC, inclusive)")
    orders_count: int = 0
    gross_revenue: float = 0
    currency: str
    avg_order_value: float = 0
    refunded_amount: float = 0
    net_revenue: float = 0
    degraded: bool = False

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "shopId": "7f7b8a1e-3a61-4c57-9a43-2b1f1c0a6e0d",
                "fromDate": "2026-09-18T20:00:00.000Z",
                "toDate": "2026-10-18T19:59:59.999Z",
                "ordersCount": 2,
                "grossRevenue": 250.0,
                "currency": "USD",
                "avgOrderValue": 125.0,
                "refundedAmount": 25.0,
                "netRevenue": 225.0,
                "degraded": False,
            }
        },
    )

    @classmethod
    def from_totals(
        cls,
        shop_id: str,
        from_date: str,
        to_date: str,
        totals: OrderTotals,
    ) -> "MetricsSummary":
        return cls(
            shop_id=shop_id,
            from_date=from_date,
            to_date=to_date,
            orders_count=totals.orders_count,
            gross_revenue=float(totals.gross_revenue),
            currency=totals.currency,
            avg_order_value=float(totals.avg_order_value),
            refunded_amount=float(totals.refunded_amount),
            net_revenue=float(totals.net_revenue),
        )


class SuccessResponse(BaseModel):
    """Generic success response."""

    success: bool = True


class ErrorResponse(BaseModel):
    """Error payload produced by HTTPException."""

    detail: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service status", examples=["ok"])
