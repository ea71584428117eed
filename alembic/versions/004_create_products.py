"""004: create products table

Revision ID: 004
Revises: 003
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE products (
            id              VARCHAR(64)     PRIMARY KEY,
            seller_id       VARCHAR(64)     NOT NULL,
            name            VARCHAR(200)    NOT NULL,
            description     TEXT            NOT NULL DEFAULT '',
            category        VARCHAR(64)     NOT NULL DEFAULT 'GENERAL',
            price           BIGINT          NOT NULL,
            quantity        INTEGER         NOT NULL DEFAULT 0,
            is_active       BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_products_price_gt_0     CHECK (price > 0),
            CONSTRAINT ck_products_quantity_gte_0 CHECK (quantity >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_products_seller ON products (seller_id, id DESC);")
    op.execute("""
        CREATE TRIGGER trg_products_updated_at
            BEFORE UPDATE ON products
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE products IS 'Listings; price in kobo, stock decremented once per paid order';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS products CASCADE;")
