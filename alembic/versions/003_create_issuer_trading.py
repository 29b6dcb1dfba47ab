"""003: create issuer_trading table

Revision ID: 003
Revises: 002
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE issuer_trading (
            ticker          VARCHAR(16)     PRIMARY KEY,
            base_price      NUMERIC(20, 8)  NOT NULL,
            price_step      NUMERIC(20, 8)  NOT NULL,
            current_price   NUMERIC(38, 14) NOT NULL,
            current_supply  NUMERIC(24, 6)  NOT NULL DEFAULT 0,
            total_usdp      NUMERIC(20, 2)  NOT NULL DEFAULT 0,
            version         BIGINT          NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_issuer_trading_ticker_upper  CHECK (ticker = UPPER(ticker)),
            CONSTRAINT ck_issuer_trading_base_gt_0     CHECK (base_price > 0),
            CONSTRAINT ck_issuer_trading_step_gt_0     CHECK (price_step > 0),
            CONSTRAINT ck_issuer_trading_supply_gte_0  CHECK (current_supply >= 0),
            CONSTRAINT ck_issuer_trading_usdp_gte_0    CHECK (total_usdp >= 0),
            CONSTRAINT ck_issuer_trading_price_gte_base CHECK (current_price >= base_price)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_issuer_trading_updated_at
            BEFORE UPDATE ON issuer_trading
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute(
        "COMMENT ON TABLE issuer_trading IS "
        "'Linear bonding curve per ticker: price = base_price + price_step * current_supply';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS issuer_trading CASCADE;")
