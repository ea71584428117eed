"""008: create penalties table

Revision ID: 008
Revises: 007
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "008"
down_revision: Union[str, None] = "007"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE penalties (
            id              BIGSERIAL       PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            action          VARCHAR(32)     NOT NULL,
            reason          TEXT            NOT NULL,
            points_added    INTEGER         NOT NULL,
            issued_by       VARCHAR(64)     NOT NULL,
            banned_until    TIMESTAMPTZ,
            dispute_id      VARCHAR(64),
            report_id       VARCHAR(64),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_penalties_points_gte_0 CHECK (points_added >= 0),
            CONSTRAINT ck_penalties_action CHECK (
                action IN ('WARNING', 'TEMP_BAN_1DAY', 'TEMP_BAN_3DAYS', 'TEMP_BAN_7DAYS',
                           'TEMP_BAN_30DAYS', 'PERMANENT_BAN', 'TRUST_LEVEL_DOWNGRADE')
            )
        );
    """)
    # One penalty per (user, cause)
    op.execute("""
        CREATE UNIQUE INDEX uq_penalties_user_dispute
        ON penalties (user_id, dispute_id) WHERE dispute_id IS NOT NULL;
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_penalties_user_report
        ON penalties (user_id, report_id) WHERE report_id IS NOT NULL;
    """)
    op.execute("CREATE INDEX idx_penalties_user ON penalties (user_id, id DESC);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS penalties CASCADE;")
