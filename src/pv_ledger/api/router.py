"""pv_ledger REST API — consumed by the payment subsystem, service key required."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pv_common.database import get_db_session
from src.pv_common.response import ApiResponse, success_response
from src.pv_gateway.auth.dependencies import require_service_key
from src.pv_ledger.application.schemas import CurrencyMutationRequest
from src.pv_ledger.application.service import LedgerApplicationService

router = APIRouter(
    prefix="/ledger", tags=["ledger"], dependencies=[Depends(require_service_key)]
)

_service = LedgerApplicationService()


@router.get("/{user_id}/balance")
async def get_balance(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_balance(db, user_id)
    return success_response(data.model_dump(mode="json"), request=request)


@router.get("/{user_id}/entries")
async def list_entries(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(50, ge=1, le=500),
) -> ApiResponse:
    data = await _service.list_entries(db, user_id, limit)
    return success_response(data.model_dump(mode="json"), request=request)


@router.post("/credit")
async def credit_currency(
    body: CurrencyMutationRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.credit_currency(db, body.user_id, body.amount, body.reference_id)
    return success_response(data.model_dump(mode="json"), request=request)


@router.post("/debit")
async def debit_currency(
    body: CurrencyMutationRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.debit_currency(db, body.user_id, body.amount, body.reference_id)
    return success_response(data.model_dump(mode="json"), request=request)
