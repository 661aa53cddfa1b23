"""005: create wallets table

Revision ID: 005
Revises: 004
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE wallets (
            id                      UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            owner_id                VARCHAR(64)     NOT NULL UNIQUE,
            balance_cents           BIGINT          NOT NULL DEFAULT 0,
            currency                VARCHAR(3)      NOT NULL DEFAULT 'CAD',
            is_active               BOOLEAN         NOT NULL DEFAULT TRUE,
            processor_account_id    VARCHAR(128),
            payout_enabled          BOOLEAN         NOT NULL DEFAULT FALSE,
            payout_schedule         VARCHAR(10)     NOT NULL DEFAULT 'weekly',
            minimum_payout_cents    BIGINT          NOT NULL DEFAULT 5000,
            last_payout_at          TIMESTAMPTZ,
            next_payout_at          TIMESTAMPTZ,
            total_earnings_cents    BIGINT          NOT NULL DEFAULT 0,
            total_spent_cents       BIGINT          NOT NULL DEFAULT 0,
            total_payouts_cents     BIGINT          NOT NULL DEFAULT 0,
            platform_fees_cents     BIGINT          NOT NULL DEFAULT 0,
            version                 BIGINT          NOT NULL DEFAULT 0,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_wallets_balance_gte_0 CHECK (balance_cents >= 0),
            CONSTRAINT ck_wallets_minimum_payout CHECK (minimum_payout_cents >= 0),
            CONSTRAINT ck_wallets_schedule CHECK (
                payout_schedule IN ('daily', 'weekly', 'monthly')
            )
        );
    """)
    op.execute("""
        CREATE INDEX idx_wallets_payout_due
        ON wallets (next_payout_at)
        WHERE payout_enabled AND is_active;
    """)
    op.execute("""
        CREATE TRIGGER trg_wallets_updated_at
        BEFORE UPDATE ON wallets
        FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE wallets IS 'Seller wallets, one per seller user id; amounts in cents';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS wallets CASCADE;")
