# tests/integration/test_settlement_flow.py
"""Integration tests for the full settlement flow: credit → enqueue → process → poll.

Requires a running PostgreSQL DB with migrations applied. Each test creates
its own ticker and users to avoid state pollution across tests.
"""

import asyncio
import uuid
from decimal import Decimal

import pytest
from httpx import AsyncClient

from src.pv_settlement.application.drainer import BatchDrainer

pytestmark = [pytest.mark.asyncio(loop_scope="session"), pytest.mark.integration]


async def drain_until_empty(client: AsyncClient) -> list[dict]:
    """Drain the shared queue; leftovers from other tests are settled too."""
    results: list[dict] = []
    while True:
        resp = await client.post("/api/v1/queue/process", params={"all": "true"})
        assert resp.status_code == 200, resp.text
        batch = resp.json()["data"]
        results.extend(batch["results"])
        if batch["summary"]["total"] == 0:
            return results


def _user() -> str:
    return f"user-{uuid.uuid4().hex[:8]}"


async def _credit(client: AsyncClient, user_id: str, amount: str) -> None:
    resp = await client.post("/api/v1/ledger/credit", json={"user_id": user_id, "amount": amount})
    assert resp.status_code == 200, resp.text


async def _enqueue(client: AsyncClient, user_id: str, ticker: str, direction: str, amount: str) -> str:
    resp = await client.post(
        "/api/v1/queue/orders",
        json={"user_id": user_id, "ticker": ticker, "direction": direction, "amount": amount},
    )
    assert resp.status_code == 200, resp.text
    return str(resp.json()["data"]["id"])


async def _balance(client: AsyncClient, user_id: str) -> Decimal:
    resp = await client.get(f"/api/v1/ledger/{user_id}/balance")
    return Decimal(resp.json()["data"]["usdp_balance"])


async def _order(client: AsyncClient, order_id: str) -> dict:
    resp = await client.get(f"/api/v1/queue/orders/{order_id}")
    assert resp.status_code == 200, resp.text
    return dict(resp.json()["data"])


async def test_buy_then_sell_round_trip(client: AsyncClient, ticker: str) -> None:
    user = _user()
    await _credit(client, user, "150.00")

    buy_id = await _enqueue(client, user, ticker, "buy", "100.00")
    await drain_until_empty(client)

    assert (await _order(client, buy_id))["status"] == "completed"
    assert await _balance(client, user) == Decimal("50.00")
    txs = (await client.get(f"/api/v1/queue/orders/{buy_id}/transactions")).json()["data"]
    assert len(txs) == 1
    assert Decimal(txs[0]["amount_pv"]) == Decimal("73.205080")
    assert Decimal(txs[0]["start_price"]) == Decimal("1.00")

    sell_id = await _enqueue(client, user, ticker, "sell", "73.205080")
    await drain_until_empty(client)

    assert (await _order(client, sell_id))["status"] == "completed"
    assert await _balance(client, user) == Decimal("149.99")


async def test_insufficient_balance_fails_without_side_effects(
    client: AsyncClient, ticker: str
) -> None:
    user = _user()
    await _credit(client, user, "50.00")

    order_id = await _enqueue(client, user, ticker, "buy", "100.00")
    await drain_until_empty(client)

    order = await _order(client, order_id)
    assert order["status"] == "failed"
    assert order["failure_reason"] == "InsufficientFunds"
    assert await _balance(client, user) == Decimal("50.00")
    txs = (await client.get(f"/api/v1/queue/orders/{order_id}/transactions")).json()["data"]
    assert [tx["status"] for tx in txs] == ["failed"]


async def test_unknown_ticker_rejected_at_enqueue(client: AsyncClient) -> None:
    resp = await client.post(
        "/api/v1/queue/orders",
        json={"user_id": _user(), "ticker": "NO-SUCH", "direction": "buy", "amount": "1"},
    )
    assert resp.status_code == 404
    assert resp.json()["code"] == 3001


async def test_cancel_pending_order(client: AsyncClient, ticker: str) -> None:
    order_id = await _enqueue(client, _user(), ticker, "buy", "5.00")
    resp = await client.post(f"/api/v1/queue/orders/{order_id}/cancel")
    assert resp.json()["data"]["status"] == "cancelled"
    # Cancelled orders are never claimed
    await drain_until_empty(client)
    assert (await _order(client, order_id))["status"] == "cancelled"


async def test_concurrent_drainers_settle_each_order_once(
    client: AsyncClient, ticker: str
) -> None:
    users = [_user() for _ in range(8)]
    for user in users:
        await _credit(client, user, "20.00")
    order_ids = [await _enqueue(client, user, ticker, "buy", "10.00") for user in users]

    drainers = [BatchDrainer() for _ in range(4)]
    await asyncio.gather(*(d.process_all(50) for d in drainers))
    await drain_until_empty(client)

    for order_id in order_ids:
        order = await _order(client, order_id)
        assert order["status"] == "completed", order
        txs = (await client.get(f"/api/v1/queue/orders/{order_id}/transactions")).json()["data"]
        assert len(txs) == 1
    for user in users:
        assert await _balance(client, user) == Decimal("10.00")
