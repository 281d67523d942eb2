"""Create shops and audit_logs tables

Revision ID: 20261018_000001
Revises:
Create Date: 2026-10-18 09:00:00.000000

WHAT:
    Creates the two persisted tables:
    - shops: connected Shopify stores with their encrypted access token
    - audit_logs: append-only record of connects, fetches and failures

WHY:
    A metrics request needs the shop's Admin API token, and every OAuth
    outcome, metrics fetch and disconnect must leave a traceable record.

REFERENCES:
    - app/models.py (Shop, AuditLog, AuditActionEnum)
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '20261018_000001'
down_revision = None
branch_labels = None
depends_on = None


AUDIT_ACTIONS = ('oauth_success', 'oauth_failure', 'metrics_fetch', 'shop_disconnect')


def upgrade() -> None:
    # =========================================================================
    # STEP 1: Create shops table
    # =========================================================================
    # WHAT: One row per canonical shop domain
    # WHY: Reconnecting a domain updates this row instead of adding one
    op.create_table(
        'shops',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('shop_domain', sa.String(), nullable=False),
        sa.Column('access_token_enc', sa.Text(), nullable=False),
        sa.Column('scope', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_shops_shop_domain', 'shops', ['shop_domain'], unique=True)

    # =========================================================================
    # STEP 2: Create audit_logs table
    # =========================================================================
    # WHAT: Write-once events, optionally linked to a shop
    # WHY: oauth_failure events may have no shop yet, so shop_id is nullable
    op.create_table(
        'audit_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('actor', sa.String(), nullable=False, server_default='server'),
        sa.Column('action', sa.Enum(*AUDIT_ACTIONS, name='auditactionenum'), nullable=False),
        sa.Column('shop_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('shops.id'), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_audit_logs_shop_id', 'audit_logs', ['shop_id'])


def downgrade() -> None:
    op.drop_index('ix_audit_logs_shop_id', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.execute("DROP TYPE IF EXISTS auditactionenum")

    op.drop_index('ix_shops_shop_domain', table_name='shops')
    op.drop_table('shops')
