"""007: create payout_attempts table

Revision ID: 007
Revises: 006
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE payout_attempts (
            id                      UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            owner_id                VARCHAR(64)     NOT NULL,
            amount_cents            BIGINT          NOT NULL,
            currency                VARCHAR(3)      NOT NULL,
            mode                    VARCHAR(20)     NOT NULL,
            status                  VARCHAR(20)     NOT NULL DEFAULT 'requested',
            processor_payout_id     VARCHAR(128),
            transaction_id          BIGINT          REFERENCES wallet_transactions(id),
            error                   TEXT,
            reconcile_attempts      INT             NOT NULL DEFAULT 0,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_payout_amount_gt_0 CHECK (amount_cents > 0),
            CONSTRAINT ck_payout_mode CHECK (mode IN ('automatic', 'manual', 'scheduled')),
            CONSTRAINT ck_payout_status CHECK (
                status IN ('requested', 'submitted', 'completed', 'failed', 'needs_review')
            ),
            CONSTRAINT ck_payout_submitted_has_id CHECK (
                status NOT IN ('submitted', 'completed') OR processor_payout_id IS NOT NULL
            )
        );
    """)
    # One in-flight payout per wallet
    op.execute("""
        CREATE UNIQUE INDEX uq_payout_in_flight
        ON payout_attempts (owner_id)
        WHERE status IN ('requested', 'submitted');
    """)
    op.execute("CREATE INDEX idx_payout_owner_time ON payout_attempts (owner_id, created_at DESC);")
    op.execute("""
        CREATE INDEX idx_payout_stale
        ON payout_attempts (updated_at)
        WHERE status IN ('requested', 'submitted');
    """)
    op.execute("""
        CREATE TRIGGER trg_payout_attempts_updated_at
        BEFORE UPDATE ON payout_attempts
        FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS payout_attempts CASCADE;")
