"""004: create order_disputes table

Revision ID: 004
Revises: 003
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE order_disputes (
            order_id            VARCHAR(64)     PRIMARY KEY REFERENCES orders(id),
            is_disputed         BOOLEAN         NOT NULL DEFAULT TRUE,
            dispute_type        VARCHAR(50)     NOT NULL,
            reason              TEXT            NOT NULL,
            details             TEXT,
            reported_by         VARCHAR(20)     NOT NULL,
            reporter_id         VARCHAR(320)    NOT NULL,
            reported_at         TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            status              VARCHAR(20)     NOT NULL DEFAULT 'open',
            resolution          VARCHAR(30),
            admin_notes         TEXT,
            resolution_notes    TEXT,
            resolved_at         TIMESTAMPTZ,
            resolved_by         VARCHAR(64),
            evidence            JSONB           NOT NULL DEFAULT '[]'::jsonb,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_disputes_reported_by CHECK (reported_by IN ('artisan', 'buyer')),
            CONSTRAINT ck_disputes_status CHECK (
                status IN ('open', 'investigating', 'resolved', 'closed')
            ),
            CONSTRAINT ck_disputes_resolution CHECK (
                resolution IS NULL OR resolution IN
                    ('buyer_refunded', 'artisan_paid', 'partial_refund', 'no_action_needed')
            )
        );
    """)
    op.execute("CREATE INDEX idx_disputes_status ON order_disputes (status, reported_at DESC);")
    op.execute("CREATE INDEX idx_disputes_active ON order_disputes (order_id) WHERE is_disputed;")
    op.execute("""
        CREATE TRIGGER trg_disputes_updated_at
        BEFORE UPDATE ON order_disputes
        FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS order_disputes CASCADE;")
