"""007: create disputes and dispute_messages tables

Revision ID: 007
Revises: 006
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE disputes (
            id              VARCHAR(64)     PRIMARY KEY,
            order_id        VARCHAR(64)     NOT NULL REFERENCES orders (id),
            buyer_id        VARCHAR(64)     NOT NULL,
            seller_id       VARCHAR(64)     NOT NULL,
            reason          TEXT            NOT NULL,
            status          VARCHAR(32)     NOT NULL DEFAULT 'OPEN',
            buyer_evidence  TEXT[]          NOT NULL DEFAULT '{}',
            seller_evidence TEXT[]          NOT NULL DEFAULT '{}',
            resolution      TEXT,
            refund_amount   BIGINT          NOT NULL DEFAULT 0,
            resolved_at     TIMESTAMPTZ,
            resolved_by     VARCHAR(64),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_disputes_order_id UNIQUE (order_id),
            CONSTRAINT ck_disputes_refund_gte_0 CHECK (refund_amount >= 0),
            CONSTRAINT ck_disputes_status CHECK (
                status IN ('OPEN', 'UNDER_REVIEW', 'RESOLVED_BUYER_FAVOR',
                           'RESOLVED_SELLER_FAVOR', 'RESOLVED_COMPROMISE', 'DISMISSED')
            )
        );
    """)
    op.execute("CREATE INDEX idx_disputes_buyer ON disputes (buyer_id, created_at DESC);")
    op.execute("CREATE INDEX idx_disputes_seller ON disputes (seller_id, created_at DESC);")
    op.execute("CREATE INDEX idx_disputes_status ON disputes (status, created_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_disputes_updated_at
            BEFORE UPDATE ON disputes
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE dispute_messages (
            id              BIGSERIAL       PRIMARY KEY,
            dispute_id      VARCHAR(64)     NOT NULL REFERENCES disputes (id),
            sender_id       VARCHAR(64)     NOT NULL,
            sender_type     VARCHAR(10)     NOT NULL,
            message         TEXT            NOT NULL,
            attachments     TEXT[]          NOT NULL DEFAULT '{}',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_dispute_messages_sender CHECK (
                sender_type IN ('BUYER', 'SELLER', 'ADMIN')
            )
        );
    """)
    op.execute("CREATE INDEX idx_dispute_messages_dispute ON dispute_messages (dispute_id, id);")
    op.execute("COMMENT ON TABLE dispute_messages IS 'Append-only dispute conversation';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS dispute_messages CASCADE;")
    op.execute("DROP TABLE IF EXISTS disputes CASCADE;")
