# src/pv_queue/application/schemas.py
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from src.pv_queue.domain.models import Order


class EnqueueOrderRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    ticker: str = Field(..., min_length=1, max_length=16)
    direction: str = Field(..., description="buy or sell")
    amount: Decimal = Field(..., description="USDP for buy orders, PV for sell orders")


class OrderResponse(BaseModel):
    id: str
    user_id: str
    ticker: str
    direction: str
    amount: Decimal
    amount_usdp: Decimal
    amount_pv: Decimal
    status: str
    failure_reason: str | None
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            user_id=order.user_id,
            ticker=order.ticker,
            direction=order.direction,
            amount=order.amount,
            amount_usdp=order.amount_usdp,
            amount_pv=order.amount_pv,
            status=order.status,
            failure_reason=order.failure_reason,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )
