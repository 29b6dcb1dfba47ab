"""LedgerRepository — concrete implementation of LedgerRepositoryProtocol.

All balance-mutating operations are a single atomic PostgreSQL statement
(conditional UPDATE or INSERT ... ON CONFLICT, always with RETURNING). A debit
returning 0 rows means the non-negative constraint would be violated.
Application code never reads a balance and writes it back.

Balance policy: an unknown user has a USDP balance of 0. Credits create the
row, debits against an unknown user fail with InsufficientFundsError.

Transaction ownership: The CALLER (application service or processor) is
responsible for starting and committing the transaction.
"""

from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pv_common.decimals import ZERO
from src.pv_common.enums import LedgerEntryType
from src.pv_common.errors import InsufficientFundsError, InsufficientSharesError, InternalError
from src.pv_ledger.domain.models import LedgerEntry, ShareHolding

# ---------------------------------------------------------------------------
# SQL: user_balances mutations
# ---------------------------------------------------------------------------

_CREDIT_SQL = text("""
    INSERT INTO user_balances (user_id, usdp_balance)
    VALUES (:user_id, :amount)
    ON CONFLICT (user_id) DO UPDATE
        SET usdp_balance = user_balances.usdp_balance + EXCLUDED.usdp_balance,
            updated_at = NOW()
    RETURNING usdp_balance
""")

_DEBIT_SQL = text("""
    UPDATE user_balances
    SET usdp_balance = usdp_balance - :amount,
        updated_at = NOW()
    WHERE user_id = :user_id AND usdp_balance >= :amount
    RETURNING usdp_balance
""")

_GET_BALANCE_SQL = text("""
    SELECT usdp_balance FROM user_balances WHERE user_id = :user_id
""")

_INSERT_LEDGER_SQL = text("""
    INSERT INTO ledger_entries
        (user_id, entry_type, amount, balance_after, reference_type, reference_id)
    VALUES
        (:user_id, :entry_type, :amount, :balance_after, :reference_type, :reference_id)
""")

_LIST_LEDGER_SQL = text("""
    SELECT id, user_id, entry_type, amount, balance_after,
           reference_type, reference_id, created_at
    FROM ledger_entries
    WHERE user_id = :user_id
    ORDER BY id DESC
    LIMIT :limit
""")

# ---------------------------------------------------------------------------
# SQL: portfolio mutations
# ---------------------------------------------------------------------------

_HOLDING_COLUMNS = "user_id, ticker, pv_amount, avg_cost_basis, updated_at"

# Postgres evaluates every SET expression against the pre-update row,
# so avg_cost_basis sees the old pv_amount.
_CREDIT_SHARES_SQL = text(f"""
    INSERT INTO portfolio (user_id, ticker, pv_amount, avg_cost_basis)
    VALUES (:user_id, :ticker, :delta, COALESCE(CAST(:price AS NUMERIC), 0))
    ON CONFLICT (user_id, ticker) DO UPDATE
        SET avg_cost_basis = CASE
                WHEN CAST(:price AS NUMERIC) IS NULL THEN portfolio.avg_cost_basis
                WHEN portfolio.pv_amount + EXCLUDED.pv_amount = 0 THEN 0
                ELSE TRUNC(
                    (portfolio.pv_amount * portfolio.avg_cost_basis
                     + EXCLUDED.pv_amount * CAST(:price AS NUMERIC))
                    / (portfolio.pv_amount + EXCLUDED.pv_amount), 8)
            END,
            pv_amount = portfolio.pv_amount + EXCLUDED.pv_amount,
            updated_at = NOW()
    RETURNING {_HOLDING_COLUMNS}
""")

_DEBIT_SHARES_SQL = text(f"""
    UPDATE portfolio
    SET pv_amount = pv_amount - :quantity,
        avg_cost_basis = CASE WHEN pv_amount = :quantity THEN 0 ELSE avg_cost_basis END,
        updated_at = NOW()
    WHERE user_id = :user_id AND ticker = :ticker AND pv_amount >= :quantity
    RETURNING {_HOLDING_COLUMNS}
""")

_GET_HOLDING_SQL = text(f"""
    SELECT {_HOLDING_COLUMNS}
    FROM portfolio
    WHERE user_id = :user_id AND ticker = :ticker
""")


def _row_to_holding(row: object) -> ShareHolding:
    return ShareHolding(
        user_id=row.user_id,  # type: ignore[attr-defined]
        ticker=row.ticker,  # type: ignore[attr-defined]
        pv_amount=Decimal(row.pv_amount),  # type: ignore[attr-defined]
        avg_cost_basis=Decimal(row.avg_cost_basis),  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_ledger(row: object) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        entry_type=row.entry_type,  # type: ignore[attr-defined]
        amount=Decimal(row.amount),  # type: ignore[attr-defined]
        balance_after=Decimal(row.balance_after),  # type: ignore[attr-defined]
        reference_type=row.reference_type,  # type: ignore[attr-defined]
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class LedgerRepository:
    """Concrete repository — all operations atomic at the SQL level."""

    async def get_balance(self, db: AsyncSession, user_id: str) -> Decimal:
        result = await db.execute(_GET_BALANCE_SQL, {"user_id": user_id})
        row = result.fetchone()
        return Decimal(row.usdp_balance) if row else ZERO

    async def increment(
        self,
        db: AsyncSession,
        user_id: str,
        amount: Decimal,
        entry_type: str,
        reference_type: str | None = None,
        reference_id: str | None = None,
    ) -> Decimal:
        """Add `amount` (negative = debit) and append the audit entry. Returns new balance."""
        if amount >= 0:
            result = await db.execute(_CREDIT_SQL, {"user_id": user_id, "amount": amount})
            row = result.fetchone()
            if row is None:
                raise InternalError("Balance upsert returned no rows — this should never happen")
        else:
            result = await db.execute(_DEBIT_SQL, {"user_id": user_id, "amount": -amount})
            row = result.fetchone()
            if row is None:
                available = await self.get_balance(db, user_id)
                raise InsufficientFundsError(-amount, available)

        balance_after = Decimal(row.usdp_balance)
        await db.execute(
            _INSERT_LEDGER_SQL,
            {
                "user_id": user_id,
                "entry_type": LedgerEntryType(entry_type).value,
                "amount": amount,
                "balance_after": balance_after,
                "reference_type": reference_type,
                "reference_id": reference_id,
            },
        )
        return balance_after

    async def get_holding(
        self, db: AsyncSession, user_id: str, ticker: str
    ) -> ShareHolding | None:
        result = await db.execute(_GET_HOLDING_SQL, {"user_id": user_id, "ticker": ticker})
        row = result.fetchone()
        return _row_to_holding(row) if row else None

    async def get_share_balance(self, db: AsyncSession, user_id: str, ticker: str) -> Decimal:
        """PV held; 0 when the user has never held the ticker."""
        holding = await self.get_holding(db, user_id, ticker)
        return holding.pv_amount if holding else ZERO

    async def adjust_share_balance(
        self,
        db: AsyncSession,
        user_id: str,
        ticker: str,
        delta: Decimal,
        price: Decimal | None = None,
    ) -> ShareHolding:
        """Add `delta` PV (negative = debit). `price` feeds the cost basis on credits."""
        if delta >= 0:
            result = await db.execute(
                _CREDIT_SHARES_SQL,
                {"user_id": user_id, "ticker": ticker, "delta": delta, "price": price},
            )
            row = result.fetchone()
            if row is None:
                raise InternalError("Portfolio upsert returned no rows — this should never happen")
            return _row_to_holding(row)

        result = await db.execute(
            _DEBIT_SHARES_SQL, {"user_id": user_id, "ticker": ticker, "quantity": -delta}
        )
        row = result.fetchone()
        if row is None:
            holding = await self.get_holding(db, user_id, ticker)
            available = holding.pv_amount if holding else ZERO
            raise InsufficientSharesError(ticker, -delta, available)
        return _row_to_holding(row)

    async def list_ledger_entries(
        self, db: AsyncSession, user_id: str, limit: int
    ) -> list[LedgerEntry]:
        result = await db.execute(_LIST_LEDGER_SQL, {"user_id": user_id, "limit": limit})
        return [_row_to_ledger(row) for row in result.fetchall()]
