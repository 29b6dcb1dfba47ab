"""Order domain model — pure dataclass, no SQLAlchemy dependency."""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.pv_common.enums import OrderDirection, OrderStatus


@dataclass
class Order:
    id: str
    user_id: str
    ticker: str
    direction: str  # buy / sell
    # Amount fields are split by direction; the other one is always 0
    amount_usdp: Decimal  # buy size in USDP
    amount_pv: Decimal  # sell size in PV
    status: str = OrderStatus.PENDING.value
    failure_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_buy(self) -> bool:
        return self.direction == OrderDirection.BUY.value

    @property
    def amount(self) -> Decimal:
        return self.amount_usdp if self.is_buy else self.amount_pv

    @property
    def is_terminal(self) -> bool:
        return OrderStatus(self.status).is_terminal
