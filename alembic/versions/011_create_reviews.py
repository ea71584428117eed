"""011: create reviews table

Revision ID: 011
Revises: 010
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "011"
down_revision: Union[str, None] = "010"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE reviews (
            id              BIGSERIAL       PRIMARY KEY,
            order_id        VARCHAR(64)     NOT NULL REFERENCES orders (id),
            reviewer_id     VARCHAR(64)     NOT NULL,
            reviewee_id     VARCHAR(64)     NOT NULL,
            review_type     VARCHAR(10)     NOT NULL,
            rating          SMALLINT        NOT NULL,
            comment         TEXT,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_reviews_rating CHECK (rating BETWEEN 1 AND 5),
            CONSTRAINT ck_reviews_type CHECK (review_type IN ('SELLER', 'RIDER')),
            CONSTRAINT ck_reviews_not_self CHECK (reviewer_id <> reviewee_id),
            CONSTRAINT uq_reviews_order_type UNIQUE (order_id, review_type)
        );
    """)
    op.execute("""
        CREATE INDEX idx_reviews_reviewee ON reviews (reviewee_id, review_type, id DESC);
    """)
    op.execute("COMMENT ON TABLE reviews IS 'One buyer review per (order, party); feeds accounts.avg_rating';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS reviews CASCADE;")
