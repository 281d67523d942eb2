"""Connected shop endpoints: analytics summary and disconnect."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..deps import ShopifyClientFactory, Settings, get_settings, get_shopify_client_factory
from ..errors import StoreNotFound
from ..services.metrics_service import get_shop_metrics
from ..services.shop_service import disconnect_shop

logger = logging.getLogger(__name__)


router = APIRouter(
    prefix="/shops",
    tags=["Shops"],
    responses={
        404: {"model": schemas.ErrorResponse, "description": "Not Found"},
        500: {"model": schemas.ErrorResponse, "description": "Internal Server Error"},
    },
)


@router.get(
    "/{shop_id}/metrics",
    response_model=schemas.MetricsSummary,
    summary="Rolling 30-day analytics summary",
    description="""
    Aggregate the shop's orders and refunds over the last 30 days
    (business timezone, today included).

    When Shopify cannot be reached the response is still 200, with every
    figure at zero and `degraded: true`.
    """,
)
async def read_shop_metrics(
    shop_id: str,
    db: Session = Depends(get_db),
    client_factory: ShopifyClientFactory = Depends(get_shopify_client_factory),
    settings: Settings = Depends(get_settings),
):
    try:
        return await get_shop_metrics(
            db,
            shop_id,
            client_factory,
            tz_name=settings.BUSINESS_TIMEZONE,
            fallback_currency=settings.FALLBACK_CURRENCY,
        )
    except StoreNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shop not found")
    except Exception:
        db.rollback()
        logger.exception("[SHOPS] Metrics fetch failed for shop %s", shop_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )


@router.post(
    "/{shop_id}/disconnect",
    response_model=schemas.SuccessResponse,
    summary="Disconnect a shop",
    description="Record a disconnect event. The shop record is kept for audit history.",
)
def disconnect(shop_id: str, db: Session = Depends(get_db)):
    try:
        disconnect_shop(db, shop_id)
    except StoreNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shop not found")
    except Exception:
        db.rollback()
        logger.exception("[SHOPS] Disconnect failed for shop %s", shop_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to disconnect shop",
        )
    return schemas.SuccessResponse()
