"""004: create portfolio table

Revision ID: 004
Revises: 003
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE portfolio (
            user_id         VARCHAR(64)     NOT NULL,
            ticker          VARCHAR(16)     NOT NULL REFERENCES issuer_trading (ticker),
            pv_amount       NUMERIC(24, 6)  NOT NULL DEFAULT 0,
            avg_cost_basis  NUMERIC(30, 8)  NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, ticker),
            CONSTRAINT ck_portfolio_pv_gte_0    CHECK (pv_amount >= 0),
            CONSTRAINT ck_portfolio_basis_gte_0 CHECK (avg_cost_basis >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_portfolio_updated_at
            BEFORE UPDATE ON portfolio
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE portfolio IS 'PV holdings per user and ticker, 6 decimal places';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS portfolio CASCADE;")
