# src/pv_queue/infrastructure/persistence.py
"""OrderQueueRepository — raw SQL persistence implementation.

Every status change is a conditional UPDATE on the expected current status,
so a row can never skip or repeat a transition even under concurrent callers.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pv_queue.domain.models import Order

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_SELECT_COLUMNS = """
    id, user_id, ticker, direction, amount_usdp, amount_pv,
    status, failure_reason, created_at, updated_at
"""

_INSERT_ORDER_SQL = text(f"""
    INSERT INTO order_queue (user_id, ticker, direction, amount_usdp, amount_pv, status)
    VALUES (:user_id, :ticker, :direction, :amount_usdp, :amount_pv, 'pending')
    RETURNING {_SELECT_COLUMNS}
""")

# SKIP LOCKED: a concurrent claimer moves on to the next pending row instead
# of blocking on (and then double-claiming) the one already being taken.
_CLAIM_NEXT_SQL = text(f"""
    UPDATE order_queue
    SET status = 'processing', updated_at = NOW()
    WHERE id = (
        SELECT id FROM order_queue
        WHERE status = 'pending'
        ORDER BY created_at, seq
        LIMIT 1
        FOR UPDATE SKIP LOCKED
    )
    RETURNING {_SELECT_COLUMNS}
""")

_TRANSITION_SQL = text(f"""
    UPDATE order_queue
    SET status = :to_status,
        failure_reason = COALESCE(:reason, failure_reason),
        updated_at = NOW()
    WHERE id = :id AND status = :from_status
    RETURNING {_SELECT_COLUMNS}
""")

_GET_ORDER_BY_ID_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM order_queue WHERE id = :id
""")

_PENDING_COUNT_SQL = text("""
    SELECT COUNT(*) FROM order_queue WHERE status = 'pending'
""")

_LIST_STUCK_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM order_queue
    WHERE status = 'processing' AND updated_at < :updated_before
    ORDER BY updated_at
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_order(row: Any) -> Order:
    """Convert a DB result row to an Order domain object."""
    return Order(
        id=str(row.id),
        user_id=row.user_id,
        ticker=row.ticker,
        direction=row.direction,
        amount_usdp=Decimal(row.amount_usdp),
        amount_pv=Decimal(row.amount_pv),
        status=row.status,
        failure_reason=row.failure_reason,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OrderQueueRepository:
    """Concrete implementation of OrderQueueRepositoryProtocol using raw SQL."""

    async def insert(
        self,
        db: AsyncSession,
        user_id: str,
        ticker: str,
        direction: str,
        amount_usdp: Decimal,
        amount_pv: Decimal,
    ) -> Order:
        result = await db.execute(
            _INSERT_ORDER_SQL,
            {
                "user_id": user_id,
                "ticker": ticker,
                "direction": direction,
                "amount_usdp": amount_usdp,
                "amount_pv": amount_pv,
            },
        )
        return _row_to_order(result.fetchone())

    async def claim_next(self, db: AsyncSession) -> Order | None:
        result = await db.execute(_CLAIM_NEXT_SQL)
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def transition(
        self,
        db: AsyncSession,
        order_id: str,
        from_status: str,
        to_status: str,
        reason: str | None = None,
    ) -> Order | None:
        """Move order_id from from_status to to_status; None if it was not in from_status."""
        result = await db.execute(
            _TRANSITION_SQL,
            {
                "id": order_id,
                "from_status": from_status,
                "to_status": to_status,
                "reason": reason,
            },
        )
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def get_by_id(self, db: AsyncSession, order_id: str) -> Order | None:
        result = await db.execute(_GET_ORDER_BY_ID_SQL, {"id": order_id})
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def pending_count(self, db: AsyncSession) -> int:
        result = await db.execute(_PENDING_COUNT_SQL)
        return int(result.scalar_one())

    async def list_stuck(self, db: AsyncSession, updated_before: datetime) -> list[Order]:
        result = await db.execute(_LIST_STUCK_SQL, {"updated_before": updated_before})
        return [_row_to_order(row) for row in result.fetchall()]
