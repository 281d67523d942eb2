"""Append-only audit trail.

WHAT: Writes one AuditLog row per connect, disconnect, fetch or failure
WHY: Keeps a traceable history of what happened to each shop
"""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.models import AuditActionEnum, AuditLog
from app.security import redact_secrets

logger = logging.getLogger(__name__)


def record_audit_event(
    db: Session,
    action: AuditActionEnum,
    *,
    shop_id: Optional[UUID] = None,
    meta: Optional[Dict[str, Any]] = None,
    actor: str = "server",
) -> AuditLog:
    """Persist a write-once audit event and commit it.

    Metadata is redacted before it is stored.
    """
    entry = AuditLog(
        actor=actor,
        action=action,
        shop_id=shop_id,
        meta=redact_secrets(meta or {}),
    )
    db.add(entry)
    db.commit()
    logger.info("[AUDIT] %s recorded (shop=%s)", action.value, shop_id)
    return entry
