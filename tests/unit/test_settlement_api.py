"""HTTP tests for the queue processing trigger endpoints (drainer mocked)."""

from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from config.settings import settings
from src.main import app
from src.pv_common.errors import StoreUnavailableError
from src.pv_queue.domain.models import Order
from src.pv_settlement.api import router as settlement_router
from src.pv_settlement.application.drainer import get_batch_drainer
from src.pv_settlement.domain.models import BatchResult, ProcessResult, Transaction

pytestmark = pytest.mark.usefixtures("redis_stub")


@pytest.fixture
def drainer() -> AsyncMock:
    mock = AsyncMock()
    app.dependency_overrides[get_batch_drainer] = lambda: mock
    yield mock
    app.dependency_overrides.pop(get_batch_drainer, None)


def _batch(*results: ProcessResult) -> BatchResult:
    batch = BatchResult()
    for result in results:
        batch.results.append(result)
        batch.summary.add(result)
    return batch


async def test_status(client: AsyncClient, drainer: AsyncMock) -> None:
    drainer.pending_order_count.return_value = 3
    drainer.stuck_orders.return_value = [
        Order("order-9", "u", "ACME", "buy", Decimal("1"), Decimal("0"), status="processing")
    ]

    resp = await client.get("/api/v1/queue/status")

    assert resp.status_code == 200
    assert resp.json()["data"] == {"pending_orders": 3, "stuck_orders": ["order-9"]}


async def test_process_one(client: AsyncClient, drainer: AsyncMock) -> None:
    drainer.process_next.return_value = ProcessResult(
        success=True, order_id="order-1", message="Bought 1 ACME", transaction_id="tx-1"
    )

    resp = await client.post("/api/v1/queue/process")

    assert resp.status_code == 200
    body = resp.json()
    assert body["data"]["success"] is True
    assert body["data"]["transaction_id"] == "tx-1"
    drainer.process_all.assert_not_called()


async def test_process_one_empty(client: AsyncClient, drainer: AsyncMock) -> None:
    drainer.process_next.return_value = None
    resp = await client.post("/api/v1/queue/process")
    assert resp.status_code == 200
    assert resp.json()["message"] == "No pending orders to process"
    assert resp.json()["data"] is None


async def test_process_all(client: AsyncClient, drainer: AsyncMock) -> None:
    drainer.process_all.return_value = _batch(
        ProcessResult(True, "o1", "ok", "tx-1"),
        ProcessResult(False, "o2", "Insufficient", "tx-2", "InsufficientFunds"),
    )

    resp = await client.post("/api/v1/queue/process", params={"all": "true", "max_batch": 5})

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["summary"] == {"total": 2, "successful": 1, "failed": 1}
    assert data["results"][1]["error"] == "InsufficientFunds"
    drainer.process_all.assert_awaited_once_with(5)


async def test_process_all_default_batch(client: AsyncClient, drainer: AsyncMock) -> None:
    drainer.process_all.return_value = _batch()
    await client.post("/api/v1/queue/process?all=true")
    drainer.process_all.assert_awaited_once_with(settings.DEFAULT_MAX_BATCH)


async def test_max_batch_above_limit_rejected(client: AsyncClient, drainer: AsyncMock) -> None:
    resp = await client.post(
        "/api/v1/queue/process", params={"all": "true", "max_batch": settings.MAX_BATCH_LIMIT + 1}
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == 4001
    drainer.process_all.assert_not_called()


async def test_store_unavailable(client: AsyncClient, drainer: AsyncMock) -> None:
    drainer.process_next.side_effect = StoreUnavailableError("connection refused")
    resp = await client.post("/api/v1/queue/process")
    assert resp.status_code == 503
    assert resp.json()["code"] == 9003


async def test_webhook_drains_everything(client: AsyncClient, drainer: AsyncMock) -> None:
    drainer.process_all.return_value = _batch(ProcessResult(True, "o1", "ok", "tx-1"))

    resp = await client.post(
        "/api/v1/queue/webhook",
        json={"type": "INSERT", "table": "order_queue", "record": {"id": "o1", "ticker": "ACME"}},
    )

    assert resp.status_code == 200
    assert resp.json()["message"] == "Processed 1 orders"
    drainer.process_all.assert_awaited_once_with(settings.MAX_BATCH_LIMIT)


async def test_webhook_without_body(client: AsyncClient, drainer: AsyncMock) -> None:
    drainer.process_all.return_value = _batch()
    resp = await client.post("/api/v1/queue/webhook")
    assert resp.status_code == 200


async def test_webhook_requires_key(client: AsyncClient, drainer: AsyncMock) -> None:
    resp = await client.post("/api/v1/queue/webhook", headers={"X-API-Key": "nope"})
    assert resp.status_code == 401
    drainer.process_all.assert_not_called()


async def test_order_transactions(
    client: AsyncClient, db_override: AsyncMock, monkeypatch: pytest.MonkeyPatch
) -> None:
    repo = AsyncMock()
    repo.list_by_order.return_value = [
        Transaction(
            order_id="o1",
            user_id="u",
            ticker="ACME",
            direction="buy",
            amount_usdp=Decimal("100.00"),
            amount_pv=Decimal("73.205080"),
            status="completed",
            avg_price=Decimal("1.36602540"),
            start_price=Decimal("1.00"),
            end_price=Decimal("1.7320508"),
            id="tx-1",
            created_at=datetime.now(UTC),
        )
    ]
    monkeypatch.setattr(settlement_router, "_tx_repo", repo)

    resp = await client.get("/api/v1/queue/orders/o1/transactions")

    assert resp.status_code == 200
    (tx,) = resp.json()["data"]
    assert tx["id"] == "tx-1"
    assert tx["amount_pv"] == "73.205080"
    assert repo.list_by_order.call_args.args[1] == "o1"
