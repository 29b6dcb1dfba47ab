"""Repository Protocol — dependency inversion for testability.

Unit tests inject a fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pv_ledger.domain.models import LedgerEntry, ShareHolding


class LedgerRepositoryProtocol(Protocol):
    async def get_balance(self, db: AsyncSession, user_id: str) -> Decimal: ...

    async def increment(
        self,
        db: AsyncSession,
        user_id: str,
        amount: Decimal,
        entry_type: str,
        reference_type: str | None = None,
        reference_id: str | None = None,
    ) -> Decimal: ...

    async def get_holding(
        self, db: AsyncSession, user_id: str, ticker: str
    ) -> ShareHolding | None: ...

    async def get_share_balance(self, db: AsyncSession, user_id: str, ticker: str) -> Decimal: ...

    async def adjust_share_balance(
        self,
        db: AsyncSession,
        user_id: str,
        ticker: str,
        delta: Decimal,
        price: Decimal | None = None,
    ) -> ShareHolding: ...

    async def list_ledger_entries(
        self, db: AsyncSession, user_id: str, limit: int
    ) -> list[LedgerEntry]: ...
