"""009: create admin_audit_log table

Revision ID: 009
Revises: 008
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "009"
down_revision: Union[str, None] = "008"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE admin_audit_log (
            id              BIGSERIAL       PRIMARY KEY,
            actor_id        VARCHAR(64)     NOT NULL,
            action          VARCHAR(50)     NOT NULL,
            target_type     VARCHAR(30)     NOT NULL,
            target_id       VARCHAR(64)     NOT NULL,
            before_value    JSONB           NOT NULL DEFAULT '{}'::jsonb,
            after_value     JSONB           NOT NULL DEFAULT '{}'::jsonb,
            description     TEXT,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_audit_target ON admin_audit_log (target_type, target_id, id DESC);")
    op.execute("""
        CREATE TRIGGER trg_audit_append_only
        BEFORE UPDATE OR DELETE ON admin_audit_log
        FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS admin_audit_log CASCADE;")
