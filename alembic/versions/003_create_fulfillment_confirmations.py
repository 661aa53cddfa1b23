"""003: create fulfillment_confirmations table

Revision ID: 003
Revises: 002
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE fulfillment_confirmations (
            order_id                VARCHAR(64)     PRIMARY KEY REFERENCES orders(id),
            leg                     VARCHAR(20)     NOT NULL,
            state                   VARCHAR(20)     NOT NULL DEFAULT 'AWAITING_SELLER',
            artisan_confirmed       BOOLEAN         NOT NULL DEFAULT FALSE,
            artisan_confirmed_at    TIMESTAMPTZ,
            artisan_notes           TEXT,
            delivery_proof          JSONB           NOT NULL DEFAULT '[]'::jsonb,
            buyer_confirmed         BOOLEAN         NOT NULL DEFAULT FALSE,
            buyer_confirmed_at      TIMESTAMPTZ,
            buyer_notes             TEXT,
            completion_deadline     TIMESTAMPTZ,
            auto_completed_at       TIMESTAMPTZ,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_confirmation_leg CHECK (leg IN ('pickup', 'delivery')),
            CONSTRAINT ck_confirmation_state CHECK (
                state IN ('AWAITING_SELLER', 'AWAITING_BUYER', 'COMPLETED',
                          'AUTO_COMPLETED', 'DISPUTED')
            ),
            CONSTRAINT ck_confirmation_deadline CHECK (
                NOT artisan_confirmed OR completion_deadline IS NOT NULL
            )
        );
    """)
    # Auto-completion sweep: due, not yet claimed
    op.execute("""
        CREATE INDEX idx_confirmations_due
        ON fulfillment_confirmations (completion_deadline)
        WHERE state = 'AWAITING_BUYER' AND auto_completed_at IS NULL;
    """)
    op.execute("""
        CREATE TRIGGER trg_confirmations_updated_at
        BEFORE UPDATE ON fulfillment_confirmations
        FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS fulfillment_confirmations CASCADE;")
