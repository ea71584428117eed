"""012: create reports table, tie penalties.report_id to it

Revision ID: 012
Revises: 011
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "012"
down_revision: Union[str, None] = "011"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE reports (
            id                  VARCHAR(64)     PRIMARY KEY,
            reporter_id         VARCHAR(64)     NOT NULL,
            report_type         VARCHAR(16)     NOT NULL,
            reason              VARCHAR(200)    NOT NULL,
            description         TEXT,
            evidence            TEXT[]          NOT NULL DEFAULT '{}',
            reported_user_id    VARCHAR(64),
            reported_product_id VARCHAR(64)     REFERENCES products (id),
            reported_order_id   VARCHAR(64)     REFERENCES orders (id),
            status              VARCHAR(16)     NOT NULL DEFAULT 'PENDING',
            action              VARCHAR(16),
            admin_notes         TEXT,
            resolved_by         VARCHAR(64),
            resolved_at         TIMESTAMPTZ,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_reports_type CHECK (
                report_type IN ('USER', 'PRODUCT', 'ORDER', 'RIDER')
            ),
            CONSTRAINT ck_reports_status CHECK (
                status IN ('PENDING', 'UNDER_REVIEW', 'RESOLVED', 'DISMISSED')
            ),
            CONSTRAINT ck_reports_action CHECK (
                action IS NULL OR action IN ('WARNING', 'SUSPEND', 'BAN')
            ),
            CONSTRAINT ck_reports_has_target CHECK (
                reported_user_id IS NOT NULL
                OR reported_product_id IS NOT NULL
                OR reported_order_id IS NOT NULL
            )
        );
    """)
    op.execute("CREATE INDEX idx_reports_reporter ON reports (reporter_id, created_at DESC);")
    op.execute("CREATE INDEX idx_reports_status ON reports (status, created_at DESC);")
    op.execute("CREATE INDEX idx_reports_reported_user ON reports (reported_user_id);")
    op.execute("""
        CREATE TRIGGER trg_reports_updated_at
            BEFORE UPDATE ON reports
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    # A report penalty must name a report that exists
    op.execute("""
        ALTER TABLE penalties
        ADD CONSTRAINT fk_penalties_report FOREIGN KEY (report_id) REFERENCES reports (id);
    """)


def downgrade() -> None:
    op.execute("ALTER TABLE penalties DROP CONSTRAINT IF EXISTS fk_penalties_report;")
    op.execute("DROP TABLE IF EXISTS reports CASCADE;")
