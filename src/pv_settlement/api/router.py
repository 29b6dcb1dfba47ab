"""Queue processing endpoints — the HTTP and webhook trigger adapters.

GET  /queue/status              pending count + stuck order ids
POST /queue/process             process one order (?all=true drains up to max_batch)
POST /queue/webhook             database INSERT webhook on order_queue; drains all
GET  /queue/orders/{id}/transactions   settlement records for status polling
"""
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pv_common.database import get_db_session
from src.pv_common.response import ApiResponse, success_response
from src.pv_gateway.auth.dependencies import require_service_key
from src.pv_settlement.application.drainer import BatchDrainer, get_batch_drainer
from src.pv_settlement.application.schemas import (
    BatchResultResponse,
    ProcessResultResponse,
    QueueStatusResponse,
    TransactionResponse,
)
from src.pv_settlement.infrastructure.transactions_repository import TransactionRepository

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/queue", tags=["settlement"], dependencies=[Depends(require_service_key)]
)

_tx_repo = TransactionRepository()


@router.get("/status")
async def queue_status(
    drainer: Annotated[BatchDrainer, Depends(get_batch_drainer)],
    request: Request,
) -> ApiResponse:
    pending = await drainer.pending_order_count()
    stuck = await drainer.stuck_orders()
    data = QueueStatusResponse(pending_orders=pending, stuck_orders=[o.id for o in stuck])
    return success_response(data.model_dump(mode="json"), request=request)


@router.post("/process")
async def process_queue(
    drainer: Annotated[BatchDrainer, Depends(get_batch_drainer)],
    request: Request,
    drain_all: bool = Query(False, alias="all", description="Drain up to max_batch orders"),
    max_batch: int = Query(
        settings.DEFAULT_MAX_BATCH, ge=1, le=settings.MAX_BATCH_LIMIT
    ),
) -> ApiResponse:
    if drain_all:
        batch = await drainer.process_all(max_batch)
        data = BatchResultResponse.from_batch(batch)
        return success_response(
            data.model_dump(mode="json"),
            message=f"Processed {batch.summary.total} orders",
            request=request,
        )

    result = await drainer.process_next()
    if result is None:
        return success_response(None, message="No pending orders to process", request=request)
    return success_response(
        ProcessResultResponse.from_result(result).model_dump(mode="json"),
        message=result.message,
        request=request,
    )


@router.post("/webhook")
async def queue_webhook(
    drainer: Annotated[BatchDrainer, Depends(get_batch_drainer)],
    request: Request,
    payload: Annotated[dict[str, Any] | None, Body()] = None,
) -> ApiResponse:
    """Wake-on-insert trigger; the payload is only logged, the queue is the source of truth."""
    if payload and payload.get("type") == "INSERT":
        record = payload.get("record") or {}
        logger.info(
            "Woken by new queue item %s (%s %s)",
            record.get("id"), record.get("direction"), record.get("ticker"),
        )
    batch = await drainer.process_all(settings.MAX_BATCH_LIMIT)
    data = BatchResultResponse.from_batch(batch)
    return success_response(
        data.model_dump(mode="json"),
        message=f"Processed {batch.summary.total} orders",
        request=request,
    )


@router.get("/orders/{order_id}/transactions")
async def order_transactions(
    order_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    txs = await _tx_repo.list_by_order(db, order_id)
    data = [TransactionResponse.from_transaction(tx).model_dump(mode="json") for tx in txs]
    return success_response(data, request=request)
