"""006: create wallet_transactions table

Revision ID: 006
Revises: 005
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE wallet_transactions (
            id                      BIGSERIAL       PRIMARY KEY,
            wallet_id               UUID            NOT NULL REFERENCES wallets(id),
            owner_id                VARCHAR(64)     NOT NULL,
            type                    VARCHAR(20)     NOT NULL,
            amount_cents            BIGINT          NOT NULL,
            currency                VARCHAR(3)      NOT NULL,
            balance_before_cents    BIGINT          NOT NULL,
            balance_after_cents     BIGINT          NOT NULL,
            description             VARCHAR(500),
            reference_type          VARCHAR(30),
            reference_id            VARCHAR(64),
            status                  VARCHAR(20)     NOT NULL DEFAULT 'completed',
            metadata                JSONB           NOT NULL DEFAULT '{}'::jsonb,
            idempotency_key         VARCHAR(128)    UNIQUE,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_wallet_tx_type CHECK (
                type IN ('revenue', 'top_up', 'purchase', 'payout', 'refund', 'fee', 'adjustment')
            ),
            CONSTRAINT ck_wallet_tx_status CHECK (
                status IN ('pending', 'completed', 'failed', 'cancelled')
            ),
            CONSTRAINT ck_wallet_tx_amount_nonzero CHECK (amount_cents <> 0),
            CONSTRAINT ck_wallet_tx_chain CHECK (
                balance_after_cents = balance_before_cents + amount_cents
            ),
            CONSTRAINT ck_wallet_tx_balance_gte_0 CHECK (balance_after_cents >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_wallet_tx_wallet ON wallet_transactions (wallet_id, id);")
    op.execute("CREATE INDEX idx_wallet_tx_owner_time ON wallet_transactions (owner_id, id DESC);")
    op.execute("""
        CREATE INDEX idx_wallet_tx_reference
        ON wallet_transactions (reference_type, reference_id)
        WHERE reference_id IS NOT NULL;
    """)
    op.execute("""
        CREATE TRIGGER trg_wallet_tx_append_only
        BEFORE UPDATE OR DELETE ON wallet_transactions
        FOR EACH ROW WHEN (OLD.status = 'completed')
        EXECUTE FUNCTION fn_reject_mutation();
    """)
    op.execute("COMMENT ON TABLE wallet_transactions IS 'Wallet ledger, append-only; amounts in cents';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS wallet_transactions CASCADE;")
