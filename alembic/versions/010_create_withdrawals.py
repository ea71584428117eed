"""010: create withdrawals table

Revision ID: 010
Revises: 009
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "010"
down_revision: Union[str, None] = "009"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE withdrawals (
            reference           VARCHAR(64)     PRIMARY KEY,
            user_id             VARCHAR(64)     NOT NULL REFERENCES accounts (user_id),
            idempotency_key     VARCHAR(64),
            amount              BIGINT          NOT NULL,
            account_name        VARCHAR(128)    NOT NULL,
            account_number      VARCHAR(10)     NOT NULL,
            bank_code           VARCHAR(10)     NOT NULL,
            status              VARCHAR(16)     NOT NULL DEFAULT 'PENDING',
            ledger_entry_id     BIGINT          NOT NULL REFERENCES ledger_entries (id),
            transfer_code       VARCHAR(64),
            transfer_status     VARCHAR(32),
            failure_reason      VARCHAR(500),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_withdrawals_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_withdrawals_status CHECK (status IN ('PENDING', 'SENT', 'FAILED'))
        );
    """)
    # A client retry with the same key must find the first attempt
    op.execute("""
        CREATE UNIQUE INDEX uq_withdrawals_user_key
        ON withdrawals (user_id, idempotency_key) WHERE idempotency_key IS NOT NULL;
    """)
    op.execute("CREATE INDEX idx_withdrawals_user ON withdrawals (user_id, created_at DESC);")
    op.execute("""
        CREATE INDEX idx_withdrawals_pending
        ON withdrawals (created_at) WHERE status = 'PENDING';
    """)
    op.execute("""
        CREATE TRIGGER trg_withdrawals_updated_at
            BEFORE UPDATE ON withdrawals
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS withdrawals CASCADE;")
