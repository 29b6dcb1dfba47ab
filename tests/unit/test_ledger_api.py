"""HTTP tests for the payment-subsystem ledger endpoints (service mocked)."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from src.pv_common.errors import InsufficientFundsError
from src.pv_ledger.api import router as ledger_router
from src.pv_ledger.application.schemas import (
    BalanceResponse,
    CurrencyMutationResponse,
    LedgerListResponse,
)

pytestmark = pytest.mark.usefixtures("redis_stub", "db_override")


@pytest.fixture
def service(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    svc = AsyncMock()
    monkeypatch.setattr(ledger_router, "_service", svc)
    return svc


async def test_get_balance(client: AsyncClient, service: AsyncMock) -> None:
    service.get_balance.return_value = BalanceResponse.from_balance("user-1", Decimal("12.50"))
    resp = await client.get("/api/v1/ledger/user-1/balance")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["usdp_balance"] == "12.50"
    assert data["usdp_balance_display"] == "$12.50"


async def test_credit(client: AsyncClient, service: AsyncMock) -> None:
    service.credit_currency.return_value = CurrencyMutationResponse.from_result(
        "user-1", Decimal("50.00"), Decimal("62.50")
    )
    resp = await client.post(
        "/api/v1/ledger/credit",
        json={"user_id": "user-1", "amount": "50.00", "reference_id": "pay-9"},
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["usdp_balance"] == "62.50"
    assert service.credit_currency.call_args.args[1:] == ("user-1", Decimal("50.00"), "pay-9")


async def test_credit_rejects_sub_cent_amount(client: AsyncClient, service: AsyncMock) -> None:
    resp = await client.post(
        "/api/v1/ledger/credit", json={"user_id": "user-1", "amount": "1.001"}
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == 4001
    service.credit_currency.assert_not_called()


async def test_debit_insufficient_funds(client: AsyncClient, service: AsyncMock) -> None:
    service.debit_currency.side_effect = InsufficientFundsError(Decimal("100"), Decimal("5"))
    resp = await client.post("/api/v1/ledger/debit", json={"user_id": "user-1", "amount": "100"})
    assert resp.status_code == 422
    assert resp.json()["code"] == 2001


async def test_requires_service_key(client: AsyncClient, service: AsyncMock) -> None:
    resp = await client.get("/api/v1/ledger/user-1/balance", headers={"X-API-Key": ""})
    assert resp.status_code == 401


async def test_list_entries(client: AsyncClient, service: AsyncMock) -> None:
    service.list_entries.return_value = LedgerListResponse(user_id="user-1", items=[])
    resp = await client.get("/api/v1/ledger/user-1/entries", params={"limit": 5})
    assert resp.status_code == 200
    assert resp.json()["data"] == {"user_id": "user-1", "items": []}
    assert service.list_entries.call_args.args[1:] == ("user-1", 5)


async def test_list_entries_limit_bounds(client: AsyncClient, service: AsyncMock) -> None:
    resp = await client.get("/api/v1/ledger/user-1/entries", params={"limit": 0})
    assert resp.status_code == 422
    service.list_entries.assert_not_called()
