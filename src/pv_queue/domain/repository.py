# src/pv_queue/domain/repository.py
"""OrderQueueRepository Protocol — interface contract for persistence layer."""
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pv_queue.domain.models import Order


class OrderQueueRepositoryProtocol(Protocol):
    async def insert(
        self,
        db: AsyncSession,
        user_id: str,
        ticker: str,
        direction: str,
        amount_usdp: Decimal,
        amount_pv: Decimal,
    ) -> Order: ...

    async def claim_next(self, db: AsyncSession) -> Order | None: ...

    async def transition(
        self,
        db: AsyncSession,
        order_id: str,
        from_status: str,
        to_status: str,
        reason: str | None = None,
    ) -> Order | None: ...

    async def get_by_id(self, db: AsyncSession, order_id: str) -> Order | None: ...

    async def pending_count(self, db: AsyncSession) -> int: ...

    async def list_stuck(self, db: AsyncSession, updated_before: datetime) -> list[Order]: ...
