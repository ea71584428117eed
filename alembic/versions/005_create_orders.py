"""005: create orders table

Revision ID: 005
Revises: 004
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id                  VARCHAR(64)     PRIMARY KEY,
            order_number        VARCHAR(64)     NOT NULL,
            buyer_id            VARCHAR(64)     NOT NULL,
            seller_id           VARCHAR(64)     NOT NULL,
            product_id          VARCHAR(64)     NOT NULL REFERENCES products (id),
            quantity            INTEGER         NOT NULL,
            unit_price          BIGINT          NOT NULL,
            product_price       BIGINT          NOT NULL,
            delivery_fee        BIGINT          NOT NULL,
            platform_commission BIGINT          NOT NULL,
            total_amount        BIGINT          NOT NULL,
            status              VARCHAR(20)     NOT NULL DEFAULT 'PENDING',
            is_paid             BOOLEAN         NOT NULL DEFAULT FALSE,
            payment_reference   VARCHAR(128),
            rider_id            VARCHAR(64),
            is_disputed         BOOLEAN         NOT NULL DEFAULT FALSE,
            refunded_amount     BIGINT          NOT NULL DEFAULT 0,
            delivery_address    TEXT            NOT NULL DEFAULT '',
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            rider_assigned_at   TIMESTAMPTZ,
            picked_up_at        TIMESTAMPTZ,
            delivered_at        TIMESTAMPTZ,
            completed_at        TIMESTAMPTZ,
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_orders_order_number      UNIQUE (order_number),
            CONSTRAINT uq_orders_payment_reference UNIQUE (payment_reference),
            CONSTRAINT ck_orders_quantity_gt_0     CHECK (quantity > 0),
            CONSTRAINT ck_orders_product_price     CHECK (product_price = unit_price * quantity),
            CONSTRAINT ck_orders_total             CHECK (total_amount = product_price + delivery_fee),
            CONSTRAINT ck_orders_refund_range      CHECK (refunded_amount >= 0),
            CONSTRAINT ck_orders_status CHECK (
                status IN ('PENDING', 'RIDER_ASSIGNED', 'PICKED_UP',
                           'ON_THE_WAY', 'DELIVERED', 'COMPLETED')
            ),
            CONSTRAINT ck_orders_rider_when_assigned CHECK (
                status = 'PENDING' OR rider_id IS NOT NULL
            ),
            CONSTRAINT ck_orders_paid_reference CHECK (
                is_paid = (payment_reference IS NOT NULL)
            )
        );
    """)
    op.execute("CREATE INDEX idx_orders_buyer ON orders (buyer_id, id DESC);")
    op.execute("CREATE INDEX idx_orders_seller ON orders (seller_id, id DESC);")
    op.execute("CREATE INDEX idx_orders_rider ON orders (rider_id, id DESC) WHERE rider_id IS NOT NULL;")
    op.execute("""
        CREATE INDEX idx_orders_available
        ON orders (id)
        WHERE status = 'PENDING' AND rider_id IS NULL AND is_paid = TRUE;
    """)
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE orders IS 'Marketplace orders; monetary snapshot in kobo';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
