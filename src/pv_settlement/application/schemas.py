"""Response schemas for the processing endpoints."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from src.pv_settlement.domain.models import BatchResult, ProcessResult, Transaction


class ProcessResultResponse(BaseModel):
    success: bool
    order_id: str
    message: str
    transaction_id: str | None = None
    error: str | None = None

    @classmethod
    def from_result(cls, result: ProcessResult) -> "ProcessResultResponse":
        return cls(
            success=result.success,
            order_id=result.order_id,
            message=result.message,
            transaction_id=result.transaction_id,
            error=result.error,
        )


class BatchSummaryResponse(BaseModel):
    total: int
    successful: int
    failed: int


class BatchResultResponse(BaseModel):
    results: list[ProcessResultResponse]
    summary: BatchSummaryResponse

    @classmethod
    def from_batch(cls, batch: BatchResult) -> "BatchResultResponse":
        return cls(
            results=[ProcessResultResponse.from_result(r) for r in batch.results],
            summary=BatchSummaryResponse(
                total=batch.summary.total,
                successful=batch.summary.successful,
                failed=batch.summary.failed,
            ),
        )


class QueueStatusResponse(BaseModel):
    pending_orders: int
    stuck_orders: list[str]


class TransactionResponse(BaseModel):
    id: str | None
    order_id: str
    user_id: str
    ticker: str
    direction: str
    amount_usdp: Decimal
    amount_pv: Decimal
    avg_price: Decimal | None
    start_price: Decimal | None
    end_price: Decimal | None
    status: str
    failure_reason: str | None
    created_at: datetime | None

    @classmethod
    def from_transaction(cls, tx: Transaction) -> "TransactionResponse":
        return cls(
            id=tx.id,
            order_id=tx.order_id,
            user_id=tx.user_id,
            ticker=tx.ticker,
            direction=tx.direction,
            amount_usdp=tx.amount_usdp,
            amount_pv=tx.amount_pv,
            avg_price=tx.avg_price,
            start_price=tx.start_price,
            end_price=tx.end_price,
            status=tx.status,
            failure_reason=tx.failure_reason,
            created_at=tx.created_at,
        )
