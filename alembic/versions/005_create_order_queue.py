"""005: create order_queue table

Revision ID: 005
Revises: 004
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE order_queue (
            id              VARCHAR(36)     PRIMARY KEY DEFAULT gen_random_uuid()::text,
            seq             BIGINT          GENERATED ALWAYS AS IDENTITY,
            user_id         VARCHAR(64)     NOT NULL,
            ticker          VARCHAR(16)     NOT NULL REFERENCES issuer_trading (ticker),
            direction       VARCHAR(4)      NOT NULL,
            amount_usdp     NUMERIC(20, 2)  NOT NULL DEFAULT 0,
            amount_pv       NUMERIC(24, 6)  NOT NULL DEFAULT 0,
            status          VARCHAR(20)     NOT NULL DEFAULT 'pending',
            failure_reason  VARCHAR(100),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_order_queue_direction CHECK (direction IN ('buy', 'sell')),
            CONSTRAINT ck_order_queue_amount    CHECK (
                (direction = 'buy'  AND amount_usdp > 0 AND amount_pv = 0) OR
                (direction = 'sell' AND amount_pv > 0 AND amount_usdp = 0)
            ),
            CONSTRAINT ck_order_queue_status    CHECK (
                status IN ('pending', 'processing', 'completed', 'failed', 'cancelled')
            )
        );
    """)
    # Claim order: oldest pending first, seq breaks created_at ties
    op.execute("""
        CREATE INDEX idx_order_queue_pending
        ON order_queue (created_at, seq)
        WHERE status = 'pending';
    """)
    op.execute("""
        CREATE INDEX idx_order_queue_processing
        ON order_queue (updated_at)
        WHERE status = 'processing';
    """)
    op.execute("CREATE INDEX idx_order_queue_user ON order_queue (user_id, created_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_order_queue_updated_at
            BEFORE UPDATE ON order_queue
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE order_queue IS 'Durable FIFO of trade requests awaiting settlement';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS order_queue CASCADE;")
