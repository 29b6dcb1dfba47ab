"""Repository Protocol for issuer curve state.

Unit tests inject a fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pv_curve.domain.models import CurveState


class CurveRepositoryProtocol(Protocol):
    async def get_state(self, db: AsyncSession, ticker: str) -> CurveState | None: ...

    async def compare_and_swap(
        self,
        db: AsyncSession,
        snapshot: CurveState,
        new_supply: Decimal,
        new_price: Decimal,
        new_total_usdp: Decimal,
    ) -> CurveState | None: ...
