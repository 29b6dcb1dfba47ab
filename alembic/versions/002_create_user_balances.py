"""002: create user_balances table

Revision ID: 002
Revises: 001
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE user_balances (
            user_id         VARCHAR(64)     PRIMARY KEY,
            usdp_balance    NUMERIC(20, 2)  NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_user_balances_usdp_gte_0 CHECK (usdp_balance >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_user_balances_updated_at
            BEFORE UPDATE ON user_balances
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE user_balances IS 'USDP balance per user, 2 decimal places';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_balances CASCADE;")
