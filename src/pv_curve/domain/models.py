"""Domain models for pv_curve — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.pv_common.decimals import CURVE_CONTEXT


@dataclass
class CurveState:
    """Snapshot of one issuer's bonding curve row (issuer_trading)."""

    ticker: str
    base_price: Decimal
    price_step: Decimal      # marginal price increase per 1 PV of supply
    current_price: Decimal   # cache of price_at(current_supply)
    current_supply: Decimal  # PV outstanding
    total_usdp: Decimal      # USDP held by the curve
    version: int = 0         # bumped on every settlement; CAS key
    updated_at: datetime | None = None

    def price_at(self, supply: Decimal) -> Decimal:
        return CURVE_CONTEXT.add(self.base_price, CURVE_CONTEXT.multiply(self.price_step, supply))

    @property
    def recomputed_price(self) -> Decimal:
        return self.price_at(self.current_supply)


@dataclass(frozen=True)
class BuyResult:
    tokens_received: Decimal
    new_price: Decimal
    new_supply: Decimal
    new_total_usdp: Decimal
    avg_price_paid: Decimal
    start_price: Decimal
    end_price: Decimal


@dataclass(frozen=True)
class SellResult:
    usdp_received: Decimal
    new_price: Decimal
    new_supply: Decimal
    new_total_usdp: Decimal
    avg_price_paid: Decimal
    start_price: Decimal
    end_price: Decimal
