"""OrderProcessor — turns one claimed order into a settled trade or a clean failure.

Per order:
  1. claim_next (own committed transaction)
  2-5. in ONE database transaction: load the curve snapshot, pre-check the
     user's balance, quote against the snapshot, apply ledger + holdings,
     compare-and-swap the curve row, insert the Transaction, mark completed.
  A CAS miss means another settlement on the same ticker committed first:
  the whole transaction rolls back and the order is re-quoted against a
  fresh snapshot, up to max_retries attempts.

Business failures (unknown ticker, insufficient funds/shares, curve
rejection, exhausted retries) are terminal: recorded as a failed Transaction
plus a failed order in a separate transaction, and returned, never raised.
Store failures after a claim leave the order in processing and propagate;
those orders are for an operator to resolve, never reclaimed automatically.
"""
import logging
from collections.abc import Callable
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pv_common.database import async_session_factory
from src.pv_common.enums import LedgerEntryType, TransactionStatus
from src.pv_common.errors import (
    AppError,
    ConcurrencyConflictError,
    CurveError,
    InsufficientFundsError,
    InsufficientSharesError,
    StoreUnavailableError,
    UnknownTickerError,
)
from src.pv_curve.domain.models import CurveState
from src.pv_curve.domain.pricing import quote_buy, quote_sell
from src.pv_curve.domain.repository import CurveRepositoryProtocol
from src.pv_curve.infrastructure.persistence import CurveRepository
from src.pv_ledger.domain.repository import LedgerRepositoryProtocol
from src.pv_ledger.infrastructure.persistence import LedgerRepository
from src.pv_queue.application.service import OrderQueueService
from src.pv_queue.domain.models import Order
from src.pv_settlement.domain.models import ProcessResult, Transaction
from src.pv_settlement.domain.repository import TransactionRepositoryProtocol
from src.pv_settlement.infrastructure.transactions_repository import TransactionRepository

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]

# Errors that end an order as failed rather than aborting the caller
_TERMINAL_ERRORS = (
    UnknownTickerError,
    InsufficientFundsError,
    InsufficientSharesError,
    CurveError,
)


class _StaleSnapshot(Exception):
    """The curve row moved between snapshot and write; re-quote."""


class OrderProcessor:
    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        queue: OrderQueueService | None = None,
        ledger_repo: LedgerRepositoryProtocol | None = None,
        curve_repo: CurveRepositoryProtocol | None = None,
        tx_repo: TransactionRepositoryProtocol | None = None,
        max_retries: int | None = None,
    ) -> None:
        self._session_factory: SessionFactory = session_factory or async_session_factory
        self._curve_repo: CurveRepositoryProtocol = curve_repo or CurveRepository()
        self._queue = queue or OrderQueueService(curve_repo=self._curve_repo)
        self._ledger_repo: LedgerRepositoryProtocol = ledger_repo or LedgerRepository()
        self._tx_repo: TransactionRepositoryProtocol = tx_repo or TransactionRepository()
        self._max_retries = (
            max_retries if max_retries is not None else settings.SETTLEMENT_MAX_RETRIES
        )
        if self._max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self._max_retries}")

    async def process_one(self) -> ProcessResult | None:
        """Claim and settle the oldest pending order. None when the queue is empty."""
        try:
            async with self._session_factory() as db:
                order = await self._queue.claim_next(db)
        except SQLAlchemyError as exc:
            # Nothing was claimed, nothing to clean up
            raise StoreUnavailableError(str(exc)) from exc

        if order is None:
            return None

        logger.info(
            "Processing order %s: %s %s %s for user=%s",
            order.id, order.direction, order.amount, order.ticker, order.user_id,
        )
        try:
            return await self._settle(order)
        except SQLAlchemyError as exc:
            logger.error(
                "Store failure settling order %s; left in processing for operator review",
                order.id,
                exc_info=True,
            )
            raise StoreUnavailableError(str(exc)) from exc

    async def _settle(self, order: Order) -> ProcessResult:
        for attempt in range(1, self._max_retries + 1):
            try:
                async with self._session_factory() as db:
                    async with db.begin():
                        return await self._settle_attempt(db, order)
            except _StaleSnapshot:
                logger.info(
                    "Curve %s moved while settling order %s (attempt %d/%d)",
                    order.ticker, order.id, attempt, self._max_retries,
                )
            except _TERMINAL_ERRORS as exc:
                return await self._record_failure(order, exc)

        return await self._record_failure(
            order, ConcurrencyConflictError(order.ticker, self._max_retries)
        )

    async def _settle_attempt(self, db: AsyncSession, order: Order) -> ProcessResult:
        state = await self._curve_repo.get_state(db, order.ticker)
        if state is None:
            raise UnknownTickerError(order.ticker)

        if order.is_buy:
            tx, message = await self._apply_buy(db, order, state)
        else:
            tx, message = await self._apply_sell(db, order, state)

        tx_id = await self._tx_repo.insert(db, tx)
        await self._queue.complete(db, order.id)

        logger.info("Order %s completed: %s (tx=%s)", order.id, message, tx_id)
        return ProcessResult(success=True, order_id=order.id, message=message, transaction_id=tx_id)

    async def _apply_buy(
        self, db: AsyncSession, order: Order, state: CurveState
    ) -> tuple[Transaction, str]:
        # Pre-check only; the conditional debit below is the authoritative check
        balance = await self._ledger_repo.get_balance(db, order.user_id)
        if balance < order.amount_usdp:
            raise InsufficientFundsError(order.amount_usdp, balance)

        quote = quote_buy(order.amount_usdp, state)
        await self._swap_curve(db, state, quote.new_supply, quote.new_price, quote.new_total_usdp)
        await self._ledger_repo.increment(
            db, order.user_id, -order.amount_usdp, LedgerEntryType.TRADE_BUY, "ORDER", order.id
        )
        await self._ledger_repo.adjust_share_balance(
            db, order.user_id, order.ticker, quote.tokens_received, price=quote.avg_price_paid
        )
        tx = Transaction(
            order_id=order.id,
            user_id=order.user_id,
            ticker=order.ticker,
            direction=order.direction,
            amount_usdp=order.amount_usdp,
            amount_pv=quote.tokens_received,
            status=TransactionStatus.COMPLETED.value,
            avg_price=quote.avg_price_paid,
            start_price=quote.start_price,
            end_price=quote.end_price,
        )
        return tx, f"Bought {quote.tokens_received} {order.ticker} for {order.amount_usdp} USDP"

    async def _apply_sell(
        self, db: AsyncSession, order: Order, state: CurveState
    ) -> tuple[Transaction, str]:
        held = await self._ledger_repo.get_share_balance(db, order.user_id, order.ticker)
        if held < order.amount_pv:
            raise InsufficientSharesError(order.ticker, order.amount_pv, held)

        quote = quote_sell(order.amount_pv, state)
        await self._swap_curve(db, state, quote.new_supply, quote.new_price, quote.new_total_usdp)
        await self._ledger_repo.adjust_share_balance(
            db, order.user_id, order.ticker, -order.amount_pv
        )
        await self._ledger_repo.increment(
            db, order.user_id, quote.usdp_received, LedgerEntryType.TRADE_SELL, "ORDER", order.id
        )
        tx = Transaction(
            order_id=order.id,
            user_id=order.user_id,
            ticker=order.ticker,
            direction=order.direction,
            amount_usdp=quote.usdp_received,
            amount_pv=order.amount_pv,
            status=TransactionStatus.COMPLETED.value,
            avg_price=quote.avg_price_paid,
            start_price=quote.start_price,
            end_price=quote.end_price,
        )
        return tx, f"Sold {order.amount_pv} {order.ticker} for {quote.usdp_received} USDP"

    async def _swap_curve(
        self,
        db: AsyncSession,
        state: CurveState,
        new_supply: Decimal,
        new_price: Decimal,
        new_total_usdp: Decimal,
    ) -> None:
        updated = await self._curve_repo.compare_and_swap(
            db, state, new_supply, new_price, new_total_usdp
        )
        if updated is None:
            raise _StaleSnapshot()

    async def _record_failure(self, order: Order, exc: AppError) -> ProcessResult:
        tx = Transaction(
            order_id=order.id,
            user_id=order.user_id,
            ticker=order.ticker,
            direction=order.direction,
            amount_usdp=order.amount_usdp,
            amount_pv=order.amount_pv,
            status=TransactionStatus.FAILED.value,
            failure_reason=exc.message,
        )
        async with self._session_factory() as db:
            async with db.begin():
                tx_id = await self._tx_repo.insert(db, tx)
                await self._queue.fail(db, order.id, exc.reason)

        logger.warning("Order %s failed (%s): %s", order.id, exc.reason, exc.message)
        return ProcessResult(
            success=False,
            order_id=order.id,
            message=exc.message,
            transaction_id=tx_id,
            error=exc.reason,
        )
