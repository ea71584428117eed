"""009: create notifications table

Revision ID: 009
Revises: 008
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "009"
down_revision: Union[str, None] = "008"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE notifications (
            id              BIGSERIAL       PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            kind            VARCHAR(32)     NOT NULL,
            title           VARCHAR(200)    NOT NULL,
            message         TEXT            NOT NULL,
            order_id        VARCHAR(64),
            is_read         BOOLEAN         NOT NULL DEFAULT FALSE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_notifications_user ON notifications (user_id, id DESC);")
    op.execute("""
        CREATE INDEX idx_notifications_unread
        ON notifications (user_id) WHERE is_read = FALSE;
    """)
    op.execute("COMMENT ON TABLE notifications IS 'Outbox, written in the same transaction as the state change';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS notifications CASCADE;")
