"""006: create transactions and ledger_entries tables

Revision ID: 006
Revises: 005
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE transactions (
            id              VARCHAR(36)     PRIMARY KEY DEFAULT gen_random_uuid()::text,
            order_id        VARCHAR(36)     NOT NULL REFERENCES order_queue (id),
            user_id         VARCHAR(64)     NOT NULL,
            ticker          VARCHAR(16)     NOT NULL,
            direction       VARCHAR(4)      NOT NULL,
            amount_usdp     NUMERIC(20, 2)  NOT NULL,
            amount_pv       NUMERIC(24, 6)  NOT NULL,
            avg_price       NUMERIC(30, 8),
            start_price     NUMERIC(38, 14),
            end_price       NUMERIC(38, 14),
            status          VARCHAR(20)     NOT NULL,
            failure_reason  VARCHAR(500),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_transactions_direction CHECK (direction IN ('buy', 'sell')),
            CONSTRAINT ck_transactions_status    CHECK (status IN ('completed', 'failed', 'refunded')),
            CONSTRAINT ck_transactions_amounts   CHECK (amount_usdp >= 0 AND amount_pv >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_transactions_order ON transactions (order_id, created_at);")
    op.execute("CREATE INDEX idx_transactions_user ON transactions (user_id, created_at DESC);")
    op.execute("COMMENT ON TABLE transactions IS 'Settlement records — append-only, never updated';")

    op.execute("""
        CREATE TABLE ledger_entries (
            id              BIGSERIAL       PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            entry_type      VARCHAR(30)     NOT NULL,
            amount          NUMERIC(20, 2)  NOT NULL,
            balance_after   NUMERIC(20, 2)  NOT NULL,
            reference_type  VARCHAR(30),
            reference_id    VARCHAR(64),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_ledger_entry_type CHECK (
                entry_type IN ('DEPOSIT', 'WITHDRAW', 'TRADE_BUY', 'TRADE_SELL')
            ),
            CONSTRAINT ck_ledger_balance_gte_0 CHECK (balance_after >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_ledger_user_time ON ledger_entries (user_id, created_at DESC);")
    op.execute("""
        CREATE INDEX idx_ledger_reference
        ON ledger_entries (reference_type, reference_id)
        WHERE reference_id IS NOT NULL;
    """)
    op.execute("COMMENT ON TABLE ledger_entries IS 'USDP movements — append-only, never updated or deleted';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ledger_entries CASCADE;")
    op.execute("DROP TABLE IF EXISTS transactions CASCADE;")
