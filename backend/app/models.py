"""SQLAlchemy ORM models and enums.

This module defines the persisted schema using UUID primary keys:
connected Shopify shops and the append-only audit log. Access tokens are
stored encrypted (see app/security.py).
"""

import uuid
from datetime import datetime
import enum

from sqlalchemy import Column, String, DateTime, Enum, ForeignKey, JSON, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, declarative_base


# Single Base used by the entire application
Base = declarative_base()


# Enums ---------------------------------------------------------

class AuditActionEnum(str, enum.Enum):
    oauth_success = "oauth_success"
    oauth_failure = "oauth_failure"
    metrics_fetch = "metrics_fetch"
    shop_disconnect = "shop_disconnect"


# Core models ----------------------------------------------------

class Shop(Base):
    """A merchant's connected Shopify store.

    WHAT: Links a canonical shop domain to its (encrypted) Admin API token
    WHY: Every metrics request needs the token for the shop it targets

    Reconnecting the same domain updates the token and scope in place;
    rows are never deleted by the normal flow (disconnect only audits).
    """
    __tablename__ = "shops"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    shop_domain = Column(String, unique=True, index=True, nullable=False)  # e.g., "mystore.myshopify.com"
    access_token_enc = Column(Text, nullable=False)  # Fernet ciphertext, never plaintext
    scope = Column(String, nullable=True)  # Granted scopes, comma-separated

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    audit_logs = relationship("AuditLog", back_populates="shop")


class AuditLog(Base):
    """Append-only record of connect, disconnect, fetch and failure events.

    Rows are written once and never updated or deleted.
    """
    __tablename__ = "audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    actor = Column(String, nullable=False, default="server")
    action = Column(Enum(AuditActionEnum, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    shop_id = Column(UUID(as_uuid=True), ForeignKey("shops.id"), nullable=True, index=True)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    shop = relationship("Shop", back_populates="audit_logs")
