"""TransactionRepository Protocol — interface contract for persistence layer."""
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pv_settlement.domain.models import Transaction


class TransactionRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, tx: Transaction) -> str: ...

    async def list_by_order(self, db: AsyncSession, order_id: str) -> list[Transaction]: ...
