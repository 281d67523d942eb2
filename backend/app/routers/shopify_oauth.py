"""Shopify OAuth 2.0 flow endpoints.

WHAT:
    Implements the authorization-code flow for merchant-initiated store
    connections and persists the resulting Shop record.

WHY:
    The access token obtained here is what the metrics endpoint uses to read
    orders and refunds from the Admin API.

REFERENCES:
    - Shopify OAuth: https://shopify.dev/docs/apps/auth/oauth
    - app/services/shopify_client.py (URL builder, token exchange)
    - app/services/shop_service.py (upsert)
"""

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..deps import get_settings, get_shopify_app_config
from ..errors import TokenExchangeFailed
from ..models import AuditActionEnum
from ..security import redact_secrets
from ..services.audit_service import record_audit_event
from ..services.shop_service import upsert_shop
from ..services.shopify_client import (
    ShopifyAppConfig,
    build_authorize_url,
    exchange_code_for_token,
    normalize_shop_domain,
    validate_shop_domain,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth/shopify",
    tags=["Shopify OAuth"],
    responses={
        400: {"model": schemas.ErrorResponse, "description": "Bad Request"},
        503: {"model": schemas.ErrorResponse, "description": "Shopify not configured"},
    },
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _clean_shop_domain(shop_input: Optional[str]) -> str:
    """Normalize and validate merchant input, raising 400 when unusable."""
    if not shop_input or not shop_input.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Shop domain is required",
        )

    shop_domain = normalize_shop_domain(shop_input)
    if not validate_shop_domain(shop_domain):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid Shopify store domain: {shop_domain}. Expected format: mystore.myshopify.com",
        )

    logger.info("[SHOPIFY_OAUTH] Normalized shop domain: %s -> %s", shop_input, shop_domain)
    return shop_domain


def _frontend_redirect(**params: str) -> RedirectResponse:
    frontend_url = get_settings().FRONTEND_URL.rstrip("/")
    return RedirectResponse(url=f"{frontend_url}/?{urlencode(params)}")


def _record_oauth_failure(db: Session, shop: Optional[str], reason: str) -> None:
    try:
        record_audit_event(
            db,
            AuditActionEnum.oauth_failure,
            meta={"error": reason, "shop": shop},
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("[SHOPIFY_OAUTH] Failed to record oauth_failure audit event")


# =============================================================================
# OAUTH ENDPOINTS
# =============================================================================

@router.post(
    "",
    response_model=schemas.OAuthStartResponse,
    summary="Start Shopify OAuth",
    description="Normalize the merchant's shop domain and return the Shopify consent URL.",
)
async def start_shopify_oauth(
    request: schemas.OAuthStartRequest,
    config: ShopifyAppConfig = Depends(get_shopify_app_config),
):
    shop_domain = _clean_shop_domain(request.shop_domain)
    oauth_url = build_authorize_url(config, shop_domain)
    logger.info("[SHOPIFY_OAUTH] Initiating Shopify OAuth for %s", shop_domain)
    return schemas.OAuthStartResponse(oauth_url=oauth_url)


@router.get("/authorize")
async def shopify_authorize(
    shop: str = Query(..., description="Shopify store domain (e.g., 'mystore' or 'mystore.myshopify.com')"),
    config: ShopifyAppConfig = Depends(get_shopify_app_config),
):
    """Redirect the merchant to the Shopify OAuth consent screen."""
    shop_domain = _clean_shop_domain(shop)
    auth_url = build_authorize_url(config, shop_domain)
    logger.info("[SHOPIFY_OAUTH] Redirecting to Shopify consent for %s", shop_domain)
    return RedirectResponse(url=auth_url)


@router.get("/callback")
async def shopify_callback(
    code: Optional[str] = Query(None),
    shop: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    config: ShopifyAppConfig = Depends(get_shopify_app_config),
):
    """Handle the OAuth callback from Shopify.

    WHAT:
        Exchanges the authorization code for an access token, upserts the
        Shop record and redirects to the dashboard.
    WHY:
        Completes the connection; the dashboard reads `connected=<id>` to
        start requesting metrics, or `error=<code>` to show a failure.
    """
    logger.info("[SHOPIFY_OAUTH] Processing OAuth callback: %s", redact_secrets({"shop": shop, "state": state}))

    if not code or not shop:
        logger.error("[SHOPIFY_OAUTH] Missing code or shop parameter")
        return _frontend_redirect(error="missing_params")

    shop_domain = normalize_shop_domain(shop)
    if not validate_shop_domain(shop_domain):
        logger.error("[SHOPIFY_OAUTH] Invalid shop domain in callback: %s", shop)
        _record_oauth_failure(db, shop, "Invalid shop domain")
        return _frontend_redirect(error="oauth_failed")

    try:
        grant = await exchange_code_for_token(
            config, shop_domain, code, timeout=get_settings().SHOPIFY_REQUEST_TIMEOUT
        )
    except TokenExchangeFailed:
        _record_oauth_failure(db, shop_domain, "Token exchange failed")
        return _frontend_redirect(error="oauth_failed")

    try:
        shop_record = upsert_shop(db, shop_domain, access_token=grant.access_token, scope=grant.scope)
        record_audit_event(
            db,
            AuditActionEnum.oauth_success,
            shop_id=shop_record.id,
            meta={"shop": shop_domain, "scope": grant.scope},
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("[SHOPIFY_OAUTH] Failed to persist shop %s", shop_domain)
        _record_oauth_failure(db, shop_domain, "Failed to store shop")
        return _frontend_redirect(error="oauth_failed")

    logger.info("[SHOPIFY_OAUTH] Successfully connected shop %s (%s)", shop_record.id, shop_domain)
    return _frontend_redirect(connected=str(shop_record.id))
