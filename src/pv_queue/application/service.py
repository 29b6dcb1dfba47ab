# src/pv_queue/application/service.py
"""OrderQueueService — the order queue's state machine.

    pending --claim_next--> processing --complete--> completed
                                       --fail-----> failed
    pending --cancel-----> cancelled

Commit policy: enqueue, claim_next and cancel are standalone operations and
commit their own transaction (a claim must be durable before settlement
starts). complete and fail never commit: they join the caller's settlement
transaction so the terminal status lands atomically with its effects.
"""
import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.pv_common.decimals import (
    MAX_PV,
    MAX_USDP,
    ZERO,
    is_pv_precision,
    is_usdp_precision,
    to_decimal,
)
from src.pv_common.enums import OrderDirection, OrderStatus
from src.pv_common.errors import (
    InvalidTransitionError,
    OrderNotFoundError,
    UnknownTickerError,
    ValidationError,
)
from src.pv_curve.domain.repository import CurveRepositoryProtocol
from src.pv_curve.infrastructure.persistence import CurveRepository
from src.pv_queue.domain.models import Order
from src.pv_queue.domain.repository import OrderQueueRepositoryProtocol
from src.pv_queue.infrastructure.persistence import OrderQueueRepository

logger = logging.getLogger(__name__)


def _validate_direction(direction: object) -> OrderDirection:
    try:
        return OrderDirection(direction)
    except ValueError:
        raise ValidationError(f"direction must be 'buy' or 'sell', got {direction!r}") from None


def _validate_amount(direction: OrderDirection, amount: object) -> Decimal:
    try:
        value = to_decimal(amount)
    except (TypeError, ValueError) as exc:
        raise ValidationError(str(exc)) from None
    if not value.is_finite() or value <= 0:
        raise ValidationError(f"amount must be positive, got {amount}")
    limit = MAX_USDP if direction is OrderDirection.BUY else MAX_PV
    if value > limit:
        raise ValidationError(f"amount exceeds the maximum of {limit}, got {value}")
    if direction is OrderDirection.BUY and not is_usdp_precision(value):
        raise ValidationError(f"buy amounts are USDP with at most 2 decimal places, got {value}")
    if direction is OrderDirection.SELL and not is_pv_precision(value):
        raise ValidationError(f"sell amounts are PV with at most 6 decimal places, got {value}")
    return value


class OrderQueueService:
    def __init__(
        self,
        repo: OrderQueueRepositoryProtocol | None = None,
        curve_repo: CurveRepositoryProtocol | None = None,
    ) -> None:
        self._repo: OrderQueueRepositoryProtocol = repo or OrderQueueRepository()
        self._curve_repo: CurveRepositoryProtocol = curve_repo or CurveRepository()

    async def enqueue(
        self,
        db: AsyncSession,
        user_id: str,
        ticker: str,
        direction: object,
        amount: object,
    ) -> Order:
        """Validate and insert a pending order. Nothing is written on failure."""
        if not user_id:
            raise ValidationError("user_id is required")
        if not ticker or not ticker.strip():
            raise ValidationError("ticker is required")
        side = _validate_direction(direction)
        value = _validate_amount(side, amount)
        symbol = ticker.strip().upper()

        if await self._curve_repo.get_state(db, symbol) is None:
            raise UnknownTickerError(symbol)

        try:
            order = await self._repo.insert(
                db,
                user_id=user_id,
                ticker=symbol,
                direction=side.value,
                amount_usdp=value if side is OrderDirection.BUY else ZERO,
                amount_pv=value if side is OrderDirection.SELL else ZERO,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Enqueued order %s: %s %s %s for user=%s",
            order.id, side.value, value, symbol, user_id,
        )
        return order

    async def claim_next(self, db: AsyncSession) -> Order | None:
        """Atomically take the oldest pending order; None when the queue is empty."""
        try:
            order = await self._repo.claim_next(db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if order is not None:
            logger.debug("Claimed order %s (%s %s)", order.id, order.direction, order.ticker)
        return order

    async def complete(self, db: AsyncSession, order_id: str) -> Order:
        return await self._finish(db, order_id, OrderStatus.COMPLETED, None)

    async def fail(self, db: AsyncSession, order_id: str, reason: str) -> Order:
        return await self._finish(db, order_id, OrderStatus.FAILED, reason)

    async def cancel(self, db: AsyncSession, order_id: str) -> Order:
        """pending -> cancelled. Idempotent; processing or finished orders cannot be cancelled."""
        try:
            order = await self._transition(
                db, order_id, OrderStatus.PENDING, OrderStatus.CANCELLED, None
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return order

    async def get(self, db: AsyncSession, order_id: str) -> Order:
        order = await self._repo.get_by_id(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def pending_count(self, db: AsyncSession) -> int:
        return await self._repo.pending_count(db)

    async def stuck_orders(self, db: AsyncSession, updated_before: datetime) -> list[Order]:
        """Orders left in processing since before `updated_before`. Reported, never reclaimed."""
        return await self._repo.list_stuck(db, updated_before)

    async def _finish(
        self, db: AsyncSession, order_id: str, target: OrderStatus, reason: str | None
    ) -> Order:
        return await self._transition(db, order_id, OrderStatus.PROCESSING, target, reason)

    async def _transition(
        self,
        db: AsyncSession,
        order_id: str,
        source: OrderStatus,
        target: OrderStatus,
        reason: str | None,
    ) -> Order:
        order = await self._repo.transition(db, order_id, source.value, target.value, reason)
        if order is not None:
            return order

        current = await self._repo.get_by_id(db, order_id)
        if current is None:
            raise OrderNotFoundError(order_id)
        if current.status == target.value:
            # Repeating the same terminal transition is a no-op
            return current
        raise InvalidTransitionError(order_id, current.status, target.value)
