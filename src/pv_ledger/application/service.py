"""LedgerApplicationService — payment-subsystem entry points.

credit_currency / debit_currency each run in their own transaction and
commit on success. Settlement does NOT go through this service: the order
processor calls the repository directly inside its settlement transaction.
"""

import logging
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.pv_common.decimals import MAX_USDP, is_usdp_precision
from src.pv_common.enums import LedgerEntryType
from src.pv_common.errors import ValidationError
from src.pv_ledger.application.schemas import (
    BalanceResponse,
    CurrencyMutationResponse,
    LedgerEntryResponse,
    LedgerListResponse,
)
from src.pv_ledger.domain.repository import LedgerRepositoryProtocol
from src.pv_ledger.infrastructure.persistence import LedgerRepository

logger = logging.getLogger(__name__)


def _validate_amount(amount: Decimal) -> None:
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"amount must be positive, got {amount}")
    if amount > MAX_USDP:
        raise ValidationError(f"amount exceeds the maximum of {MAX_USDP}, got {amount}")
    if not is_usdp_precision(amount):
        raise ValidationError(f"USDP amounts have at most 2 decimal places, got {amount}")


class LedgerApplicationService:
    def __init__(self, repo: LedgerRepositoryProtocol | None = None) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()

    async def get_balance(self, db: AsyncSession, user_id: str) -> BalanceResponse:
        balance = await self._repo.get_balance(db, user_id)
        return BalanceResponse.from_balance(user_id, balance)

    async def list_entries(
        self, db: AsyncSession, user_id: str, limit: int = 50
    ) -> LedgerListResponse:
        """Most recent audit entries first."""
        entries = await self._repo.list_ledger_entries(db, user_id, limit)
        return LedgerListResponse(
            user_id=user_id, items=[LedgerEntryResponse.from_entry(e) for e in entries]
        )

    async def credit_currency(
        self,
        db: AsyncSession,
        user_id: str,
        amount: Decimal,
        reference_id: str | None = None,
    ) -> CurrencyMutationResponse:
        _validate_amount(amount)
        try:
            balance = await self._repo.increment(
                db, user_id, amount, LedgerEntryType.DEPOSIT, "PAYMENT", reference_id
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Credited %s USDP to user=%s (ref=%s)", amount, user_id, reference_id)
        return CurrencyMutationResponse.from_result(user_id, amount, balance)

    async def debit_currency(
        self,
        db: AsyncSession,
        user_id: str,
        amount: Decimal,
        reference_id: str | None = None,
    ) -> CurrencyMutationResponse:
        _validate_amount(amount)
        try:
            balance = await self._repo.increment(
                db, user_id, -amount, LedgerEntryType.WITHDRAW, "PAYMENT", reference_id
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Debited %s USDP from user=%s (ref=%s)", amount, user_id, reference_id)
        return CurrencyMutationResponse.from_result(user_id, -amount, balance)
