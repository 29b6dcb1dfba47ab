"""Persist and read settlement records in the transactions table.

Rows are insert-only: there is no UPDATE statement for this table. A refund
is recorded as a new row with status 'refunded'.
"""
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pv_settlement.domain.models import Transaction

_COLUMNS = """
    id, order_id, user_id, ticker, direction,
    amount_usdp, amount_pv, avg_price, start_price, end_price,
    status, failure_reason, created_at
"""

_INSERT_TRANSACTION_SQL = text("""
    INSERT INTO transactions (
        order_id, user_id, ticker, direction,
        amount_usdp, amount_pv,
        avg_price, start_price, end_price,
        status, failure_reason
    ) VALUES (
        :order_id, :user_id, :ticker, :direction,
        :amount_usdp, :amount_pv,
        :avg_price, :start_price, :end_price,
        :status, :failure_reason
    )
    RETURNING id
""")

_LIST_BY_ORDER_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM transactions
    WHERE order_id = :order_id
    ORDER BY created_at
""")


def _dec(value: Any) -> Decimal | None:
    return Decimal(value) if value is not None else None


def _row_to_transaction(row: Any) -> Transaction:
    return Transaction(
        id=str(row.id),
        order_id=row.order_id,
        user_id=row.user_id,
        ticker=row.ticker,
        direction=row.direction,
        amount_usdp=Decimal(row.amount_usdp),
        amount_pv=Decimal(row.amount_pv),
        avg_price=_dec(row.avg_price),
        start_price=_dec(row.start_price),
        end_price=_dec(row.end_price),
        status=row.status,
        failure_reason=row.failure_reason,
        created_at=row.created_at,
    )


class TransactionRepository:
    async def insert(self, db: AsyncSession, tx: Transaction) -> str:
        """Insert one row within the caller's transaction; returns the new id."""
        result = await db.execute(
            _INSERT_TRANSACTION_SQL,
            {
                "order_id": tx.order_id,
                "user_id": tx.user_id,
                "ticker": tx.ticker,
                "direction": tx.direction,
                "amount_usdp": tx.amount_usdp,
                "amount_pv": tx.amount_pv,
                "avg_price": tx.avg_price,
                "start_price": tx.start_price,
                "end_price": tx.end_price,
                "status": tx.status,
                "failure_reason": tx.failure_reason,
            },
        )
        return str(result.scalar_one())

    async def list_by_order(self, db: AsyncSession, order_id: str) -> list[Transaction]:
        result = await db.execute(_LIST_BY_ORDER_SQL, {"order_id": order_id})
        return [_row_to_transaction(row) for row in result.fetchall()]
