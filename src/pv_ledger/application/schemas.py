"""Pydantic schemas for the pv_ledger API (payment-subsystem facing)."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from src.pv_common.decimals import usdp_to_display
from src.pv_ledger.domain.models import LedgerEntry


class CurrencyMutationRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    amount: Decimal = Field(..., gt=0, decimal_places=2, description="USDP, 2dp max")
    reference_id: str | None = Field(None, max_length=64, description="Payment id")


class BalanceResponse(BaseModel):
    user_id: str
    usdp_balance: Decimal
    usdp_balance_display: str

    @classmethod
    def from_balance(cls, user_id: str, balance: Decimal) -> "BalanceResponse":
        return cls(
            user_id=user_id,
            usdp_balance=balance,
            usdp_balance_display=usdp_to_display(balance),
        )


class CurrencyMutationResponse(BaseModel):
    user_id: str
    amount: Decimal
    amount_display: str
    usdp_balance: Decimal
    usdp_balance_display: str

    @classmethod
    def from_result(
        cls, user_id: str, amount: Decimal, balance: Decimal
    ) -> "CurrencyMutationResponse":
        return cls(
            user_id=user_id,
            amount=amount,
            amount_display=usdp_to_display(amount),
            usdp_balance=balance,
            usdp_balance_display=usdp_to_display(balance),
        )


class LedgerEntryResponse(BaseModel):
    id: int
    entry_type: str
    amount: Decimal
    amount_display: str
    balance_after: Decimal
    reference_type: str | None
    reference_id: str | None
    created_at: datetime | None

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> "LedgerEntryResponse":
        return cls(
            id=entry.id,
            entry_type=entry.entry_type,
            amount=entry.amount,
            amount_display=usdp_to_display(entry.amount),
            balance_after=entry.balance_after,
            reference_type=entry.reference_type,
            reference_id=entry.reference_id,
            created_at=entry.created_at,
        )


class LedgerListResponse(BaseModel):
    user_id: str
    items: list[LedgerEntryResponse]
