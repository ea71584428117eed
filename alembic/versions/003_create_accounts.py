"""003: create accounts table and seed the platform account

Revision ID: 003
Revises: 002
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE accounts (
            user_id             VARCHAR(64)     PRIMARY KEY,
            pending_balance     BIGINT          NOT NULL DEFAULT 0,
            available_balance   BIGINT          NOT NULL DEFAULT 0,
            penalty_points      INTEGER         NOT NULL DEFAULT 0,
            warning_count       INTEGER         NOT NULL DEFAULT 0,
            last_warning_at     TIMESTAMPTZ,
            trust_level         VARCHAR(16)     NOT NULL DEFAULT 'BRONZE',
            trust_downgrades    INTEGER         NOT NULL DEFAULT 0,
            avg_rating          NUMERIC(3, 2)   NOT NULL DEFAULT 0,
            total_reviews       INTEGER         NOT NULL DEFAULT 0,
            completed_orders    INTEGER         NOT NULL DEFAULT 0,
            is_suspended        BOOLEAN         NOT NULL DEFAULT FALSE,
            suspended_until     TIMESTAMPTZ,
            version             BIGINT          NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_accounts_pending_gte_0    CHECK (pending_balance >= 0),
            CONSTRAINT ck_accounts_available_gte_0  CHECK (available_balance >= 0),
            CONSTRAINT ck_accounts_points_gte_0     CHECK (penalty_points >= 0),
            CONSTRAINT ck_accounts_downgrades_gte_0 CHECK (trust_downgrades >= 0),
            CONSTRAINT ck_accounts_trust_level CHECK (
                trust_level IN ('BRONZE', 'SILVER', 'GOLD', 'VERIFIED')
            )
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_accounts_updated_at
            BEFORE UPDATE ON accounts
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        INSERT INTO accounts (user_id, pending_balance, available_balance)
        VALUES ('PLATFORM_FEE', 0, 0)
        ON CONFLICT (user_id) DO NOTHING;
    """)
    op.execute("COMMENT ON TABLE accounts IS 'Escrow wallets; all amounts in kobo';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS accounts CASCADE;")
