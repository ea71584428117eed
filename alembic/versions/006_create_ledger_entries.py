"""006: create ledger_entries table

Revision ID: 006
Revises: 005
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE ledger_entries (
            id              BIGSERIAL       PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            entry_type      VARCHAR(16)     NOT NULL,
            pool            VARCHAR(16)     NOT NULL,
            amount          BIGINT          NOT NULL,
            balance_before  BIGINT          NOT NULL,
            balance_after   BIGINT          NOT NULL,
            reference       VARCHAR(128)    NOT NULL,
            order_id        VARCHAR(64),
            escrow_status   VARCHAR(16),
            description     VARCHAR(500),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_ledger_reference UNIQUE (reference),
            CONSTRAINT ck_ledger_entry_type CHECK (
                entry_type IN ('DEBIT', 'CREDIT', 'ESCROW', 'WITHDRAWAL')
            ),
            CONSTRAINT ck_ledger_pool CHECK (pool IN ('PENDING', 'AVAILABLE', 'EXTERNAL')),
            CONSTRAINT ck_ledger_escrow_status CHECK (
                (entry_type = 'ESCROW' AND escrow_status IN ('HELD', 'RELEASED', 'REVERSED'))
                OR (entry_type <> 'ESCROW' AND escrow_status IS NULL)
            ),
            CONSTRAINT ck_ledger_balance_gte_0 CHECK (balance_after >= 0),
            CONSTRAINT ck_ledger_arithmetic CHECK (
                pool = 'EXTERNAL' OR balance_after = balance_before + amount
            )
        );
    """)
    op.execute("CREATE INDEX idx_ledger_user_id ON ledger_entries (user_id, id DESC);")
    op.execute("""
        CREATE INDEX idx_ledger_escrow_held
        ON ledger_entries (user_id, order_id)
        WHERE entry_type = 'ESCROW' AND escrow_status = 'HELD';
    """)
    op.execute("CREATE INDEX idx_ledger_order ON ledger_entries (order_id) WHERE order_id IS NOT NULL;")
    op.execute("""
        COMMENT ON TABLE ledger_entries IS
        'Money movements; rows are never deleted, only escrow_status of ESCROW rows changes';
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ledger_entries CASCADE;")
