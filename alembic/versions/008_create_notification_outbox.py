"""008: create notification_outbox table

Revision ID: 008
Revises: 007
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "008"
down_revision: Union[str, None] = "007"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE notification_outbox (
            id                  BIGSERIAL       PRIMARY KEY,
            notification_type   VARCHAR(50)     NOT NULL,
            recipient           VARCHAR(320)    NOT NULL,
            payload             JSONB           NOT NULL DEFAULT '{}'::jsonb,
            status              VARCHAR(10)     NOT NULL DEFAULT 'pending',
            attempts            INT             NOT NULL DEFAULT 0,
            last_error          TEXT,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            sent_at             TIMESTAMPTZ,
            CONSTRAINT ck_outbox_status CHECK (status IN ('pending', 'sent', 'failed'))
        );
    """)
    op.execute("CREATE INDEX idx_outbox_pending ON notification_outbox (id) WHERE status = 'pending';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS notification_outbox CASCADE;")
