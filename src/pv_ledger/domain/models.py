"""Domain models for pv_ledger — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass
class ShareHolding:
    user_id: str
    ticker: str
    pv_amount: Decimal
    avg_cost_basis: Decimal  # USDP per PV, weighted over all buys still held
    updated_at: datetime | None = None


@dataclass
class LedgerEntry:
    id: int                          # BIGSERIAL
    user_id: str
    entry_type: str                  # LedgerEntryType value
    amount: Decimal                  # USDP, positive=income negative=expense
    balance_after: Decimal           # usdp_balance snapshot after op
    reference_type: str | None = None
    reference_id: str | None = None
    created_at: datetime | None = None
