"""002: create orders table

Revision ID: 002
Revises: 001
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Owned by order management; this service reads it and writes only
    # status, payment_status and completed_at.
    op.execute("""
        CREATE TABLE orders (
            id                  VARCHAR(64)     PRIMARY KEY,
            status              VARCHAR(30)     NOT NULL,
            payment_status      VARCHAR(20)     NOT NULL DEFAULT 'pending',
            delivery_method     VARCHAR(30)     NOT NULL,
            total_amount_cents  BIGINT          NOT NULL,
            delivery_fee_cents  BIGINT          NOT NULL DEFAULT 0,
            currency            VARCHAR(3)      NOT NULL DEFAULT 'CAD',
            artisan_profile_id  VARCHAR(64)     NOT NULL,
            artisan_user_id     VARCHAR(64)     NOT NULL,
            patron_user_id      VARCHAR(64),
            guest_email         VARCHAR(320),
            buyer_contact       VARCHAR(320),
            artisan_contact     VARCHAR(320),
            completed_at        TIMESTAMPTZ,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_orders_payment_status CHECK (
                payment_status IN ('pending', 'paid', 'refunded', 'held_in_dispute')
            ),
            CONSTRAINT ck_orders_delivery_method CHECK (
                delivery_method IN ('pickup', 'personalDelivery', 'professionalDelivery')
            ),
            CONSTRAINT ck_orders_amounts CHECK (
                total_amount_cents >= 0 AND delivery_fee_cents >= 0
            ),
            CONSTRAINT ck_orders_buyer CHECK (
                patron_user_id IS NOT NULL OR guest_email IS NOT NULL
            )
        );
    """)
    op.execute("CREATE INDEX idx_orders_artisan_user ON orders (artisan_user_id, created_at DESC);")
    op.execute("CREATE INDEX idx_orders_payment_status ON orders (payment_status);")
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
        BEFORE UPDATE ON orders
        FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
