"""Shop service for persisting connected stores and their credentials.

WHAT:
    Upserts shops by domain with an encrypted access token, and resolves
    shops (and their decrypted token) by id.

WHY:
    - Keeps encryption and persistence logic out of routers.
    - Reconnecting a domain must refresh the existing row, never add one.

REFERENCES:
    - app/security.py (encrypt_secret / decrypt_secret)
    - app/routers/shopify_oauth.py (upserts on OAuth callback)
    - app/services/metrics_service.py (reads on every metrics request)
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import InternalFailure, StoreNotFound
from app.models import AuditActionEnum, Shop
from app.security import decrypt_secret, encrypt_secret
from app.services.audit_service import record_audit_event

logger = logging.getLogger(__name__)


def upsert_shop(
    db: Session,
    shop_domain: str,
    *,
    access_token: str,
    scope: Optional[str] = None,
) -> Shop:
    """Create or update the shop row for `shop_domain` and commit.

    WHAT:
        Updates token/scope in place when the domain is already connected,
        otherwise inserts a new row.
    WHY:
        The unique constraint on shop_domain keeps one row per store. If a
        concurrent callback inserted the same domain first, the insert is
        rolled back and the winner's row is updated instead.

    Returns:
        The persisted Shop.
    """
    encrypted_access = encrypt_secret(access_token, context=f"shopify:{shop_domain}:access")

    shop = _find_by_domain(db, shop_domain)
    if shop:
        _apply_token(shop, encrypted_access, scope)
        db.commit()
        logger.info("[SHOP_SERVICE] Updated encrypted token for %s", shop_domain)
        return shop

    shop = Shop(
        shop_domain=shop_domain,
        access_token_enc=encrypted_access,
        scope=scope,
    )
    db.add(shop)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        shop = _find_by_domain(db, shop_domain)
        if shop is None:
            raise
        _apply_token(shop, encrypted_access, scope)
        db.commit()
        logger.info("[SHOP_SERVICE] Lost insert race for %s, updated existing row", shop_domain)
        return shop

    logger.info("[SHOP_SERVICE] Created shop %s for %s", shop.id, shop_domain)
    return shop


def _find_by_domain(db: Session, shop_domain: str) -> Optional[Shop]:
    return db.query(Shop).filter(Shop.shop_domain == shop_domain).first()


def _apply_token(shop: Shop, encrypted_access: str, scope: Optional[str]) -> None:
    shop.access_token_enc = encrypted_access
    shop.scope = scope
    shop.updated_at = datetime.utcnow()


def get_shop(db: Session, shop_id: str | UUID) -> Shop:
    """Return the shop with the given id.

    Raises:
        StoreNotFound: If the id is malformed or unknown.
    """
    try:
        key = shop_id if isinstance(shop_id, UUID) else UUID(str(shop_id))
    except ValueError as exc:
        raise StoreNotFound(str(shop_id)) from exc

    shop = db.query(Shop).filter(Shop.id == key).first()
    if not shop:
        raise StoreNotFound(str(shop_id))
    return shop


def get_access_token(shop: Shop) -> str:
    """Decrypt the shop's stored access token for API calls.

    Raises:
        InternalFailure: If the stored ciphertext cannot be decrypted
            (e.g., TOKEN_ENCRYPTION_KEY was rotated).
    """
    try:
        return decrypt_secret(shop.access_token_enc, context=f"shopify:{shop.shop_domain}:access")
    except ValueError as exc:
        raise InternalFailure(f"Stored token for {shop.shop_domain} is unreadable") from exc


def disconnect_shop(db: Session, shop_id: str | UUID) -> Shop:
    """Record a disconnect for the shop.

    The shop row is kept so its audit history stays intact.

    Raises:
        StoreNotFound: If no shop exists for `shop_id`.
    """
    shop = get_shop(db, shop_id)
    record_audit_event(
        db,
        AuditActionEnum.shop_disconnect,
        shop_id=shop.id,
        meta={"timestamp": datetime.utcnow().isoformat()},
    )
    logger.info("[SHOP_SERVICE] Shop %s (%s) disconnected", shop.id, shop.shop_domain)
    return shop
