# src/pv_queue/api/router.py
"""Order placement endpoints, called by the storefront's order handler."""
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pv_common.database import get_db_session
from src.pv_common.response import ApiResponse, success_response
from src.pv_gateway.auth.dependencies import require_service_key
from src.pv_queue.application.schemas import EnqueueOrderRequest, OrderResponse
from src.pv_queue.application.service import OrderQueueService

router = APIRouter(
    prefix="/queue/orders", tags=["queue"], dependencies=[Depends(require_service_key)]
)

_service = OrderQueueService()


@router.post("")
async def enqueue_order(
    body: EnqueueOrderRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order = await _service.enqueue(db, body.user_id, body.ticker, body.direction, body.amount)
    data = OrderResponse.from_order(order).model_dump(mode="json")
    return success_response(data, message="Order queued", request=request)


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order = await _service.get(db, order_id)
    return success_response(OrderResponse.from_order(order).model_dump(mode="json"), request=request)


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order = await _service.cancel(db, order_id)
    data = OrderResponse.from_order(order).model_dump(mode="json")
    return success_response(data, message="Order cancelled", request=request)
