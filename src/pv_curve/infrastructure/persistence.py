"""CurveRepository — issuer_trading reads and optimistic writes.

The curve row is the one aggregate every trade on a ticker contends on, so
writes are compare-and-swap on `version`: the UPDATE only applies if nobody
settled against the ticker since the snapshot was read. A result of 0 rows
means the snapshot is stale and the caller must re-quote.
"""

from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pv_curve.domain.models import CurveState

_COLUMNS = """
    ticker, base_price, price_step, current_price, current_supply,
    total_usdp, version, updated_at
"""

_GET_STATE_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM issuer_trading
    WHERE ticker = :ticker
""")

_CAS_UPDATE_SQL = text(f"""
    UPDATE issuer_trading
    SET current_supply = :new_supply,
        current_price  = :new_price,
        total_usdp     = :new_total_usdp,
        version        = version + 1,
        updated_at     = NOW()
    WHERE ticker = :ticker AND version = :expected_version
    RETURNING {_COLUMNS}
""")


def _row_to_state(row: object) -> CurveState:
    return CurveState(
        ticker=row.ticker,  # type: ignore[attr-defined]
        base_price=Decimal(row.base_price),  # type: ignore[attr-defined]
        price_step=Decimal(row.price_step),  # type: ignore[attr-defined]
        current_price=Decimal(row.current_price),  # type: ignore[attr-defined]
        current_supply=Decimal(row.current_supply),  # type: ignore[attr-defined]
        total_usdp=Decimal(row.total_usdp),  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class CurveRepository:
    """Concrete repository — reads are plain, writes are version-checked."""

    async def get_state(self, db: AsyncSession, ticker: str) -> CurveState | None:
        result = await db.execute(_GET_STATE_SQL, {"ticker": ticker})
        row = result.fetchone()
        return _row_to_state(row) if row else None

    async def compare_and_swap(
        self,
        db: AsyncSession,
        snapshot: CurveState,
        new_supply: Decimal,
        new_price: Decimal,
        new_total_usdp: Decimal,
    ) -> CurveState | None:
        """Apply the new curve values iff the row is still at snapshot.version."""
        result = await db.execute(
            _CAS_UPDATE_SQL,
            {
                "ticker": snapshot.ticker,
                "expected_version": snapshot.version,
                "new_supply": new_supply,
                "new_price": new_price,
                "new_total_usdp": new_total_usdp,
            },
        )
        row = result.fetchone()
        return _row_to_state(row) if row else None
