"""Unit tests for BatchDrainer — batch draining and concurrent-trigger safety."""

import asyncio
import logging
import random
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from src.pv_common.errors import StoreUnavailableError
from src.pv_queue.application.service import OrderQueueService
from src.pv_settlement.application.drainer import BatchDrainer
from src.pv_settlement.application.processor import OrderProcessor
from src.pv_settlement.domain.models import ProcessResult
from tests.fakes import (
    FakeCurveRepository,
    FakeLedgerRepository,
    FakeOrderQueueRepository,
    FakeStore,
    FakeTransactionRepository,
    session_factory,
)


def _drainer(store: FakeStore, max_retries: int = 3) -> BatchDrainer:
    factory = session_factory(store)
    curve = FakeCurveRepository()
    queue = OrderQueueService(repo=FakeOrderQueueRepository(), curve_repo=curve)
    processor = OrderProcessor(
        session_factory=factory,
        queue=queue,
        ledger_repo=FakeLedgerRepository(),
        curve_repo=curve,
        tx_repo=FakeTransactionRepository(),
        max_retries=max_retries,
    )
    return BatchDrainer(processor=processor, queue=queue, session_factory=factory)


@pytest.fixture
def store() -> FakeStore:
    s = FakeStore()
    s.add_curve("ACME", base_price="1.00", price_step="0.01")
    return s


class TestProcessNext:
    async def test_empty(self, store: FakeStore) -> None:
        assert await _drainer(store).process_next() is None

    async def test_processes_exactly_one(self, store: FakeStore) -> None:
        store.balances["u1"] = Decimal("100")
        store.add_order("u1", "ACME", "buy", "10", age_seconds=2)
        store.add_order("u1", "ACME", "buy", "10")

        result = await _drainer(store).process_next()

        assert result is not None
        assert result.success
        assert await _drainer(store).pending_order_count() == 1


class TestProcessAll:
    async def test_two_buys_complete_in_order(self, store: FakeStore) -> None:
        store.balances["u1"] = Decimal("500.00")
        first = store.add_order("u1", "ACME", "buy", "100.00", age_seconds=2)
        second = store.add_order("u1", "ACME", "buy", "50.00")

        batch = await _drainer(store).process_all(10)

        assert [r.order_id for r in batch.results] == [first.id, second.id]
        assert batch.summary.total == 2
        assert batch.summary.successful == 2
        assert batch.summary.failed == 0
        assert store.curves["ACME"].total_usdp == Decimal("150.00")
        assert store.curves["ACME"].version == 2
        # Second buy started where the first one ended
        assert store.transactions[1].start_price == store.transactions[0].end_price

    async def test_respects_max_batch(self, store: FakeStore) -> None:
        store.balances["u1"] = Decimal("1000")
        for _ in range(5):
            store.add_order("u1", "ACME", "buy", "1.00")

        batch = await _drainer(store).process_all(3)

        assert batch.summary.total == 3
        assert await _drainer(store).pending_order_count() == 2

    async def test_second_drain_is_empty(self, store: FakeStore) -> None:
        store.balances["u1"] = Decimal("1000")
        for _ in range(4):
            store.add_order("u1", "ACME", "buy", "5.00")
        drainer = _drainer(store)

        first = await drainer.process_all(100)
        second = await drainer.process_all(100)

        assert first.summary.total == 4
        assert second.summary.total == 0
        assert second.results == []

    async def test_failures_counted_not_raised(self, store: FakeStore) -> None:
        store.balances["rich"] = Decimal("100")
        store.add_order("poor", "ACME", "buy", "10.00", age_seconds=1)
        store.add_order("rich", "ACME", "buy", "10.00")

        batch = await _drainer(store).process_all()

        assert batch.summary.total == 2
        assert batch.summary.successful == 1
        assert batch.summary.failed == 1
        assert batch.results[0].error == "InsufficientFunds"

    async def test_invalid_max_batch(self, store: FakeStore) -> None:
        with pytest.raises(ValueError):
            await _drainer(store).process_all(0)

    async def test_store_failure_logs_partial_batch(
        self, store: FakeStore, caplog: pytest.LogCaptureFixture
    ) -> None:
        processor = AsyncMock()
        processor.process_one.side_effect = [
            ProcessResult(success=True, order_id="order-1", message="Bought"),
            ProcessResult(success=False, order_id="order-2", message="no", error="InsufficientFunds"),
            StoreUnavailableError("connection reset"),
        ]
        drainer = BatchDrainer(processor=processor, session_factory=session_factory(store))

        with caplog.at_level(logging.ERROR), pytest.raises(StoreUnavailableError):
            await drainer.process_all(10)

        (record,) = [r for r in caplog.records if "aborted" in r.getMessage()]
        assert "after 2 orders (1 successful, 1 failed)" in record.getMessage()
        assert "order-1=ok, order-2=InsufficientFunds" in record.getMessage()


class TestStuckOrders:
    async def test_reports_old_processing_orders(self, store: FakeStore) -> None:
        old = store.add_order("u1", "ACME", "buy", "10", status="processing", age_seconds=900)
        store.add_order("u1", "ACME", "buy", "10", status="processing", age_seconds=5)

        stuck = await _drainer(store).stuck_orders(older_than_seconds=300)

        assert [o.id for o in stuck] == [old.id]
        # Reported only; never reclaimed
        assert store.orders[old.id].status == "processing"


class TestRunForever:
    async def test_stops_when_event_set(self, store: FakeStore) -> None:
        store.balances["u1"] = Decimal("100")
        store.add_order("u1", "ACME", "buy", "10")
        drainer = _drainer(store)
        stop = asyncio.Event()

        task = asyncio.create_task(drainer.run_forever(stop, poll_interval=0.01, max_batch=10))
        while await drainer.pending_order_count():
            await asyncio.sleep(0.01)
        stop.set()
        totals = await asyncio.wait_for(task, timeout=2)

        assert totals.total == 1
        assert totals.successful == 1


class TestConcurrentDrains:
    async def test_concurrent_drains_settle_each_order_once(self, store: FakeStore) -> None:
        for i in range(10):
            store.balances[f"u{i}"] = Decimal("100")
            store.add_order(f"u{i}", "ACME", "buy", "10.00")

        batches = await asyncio.gather(
            *(_drainer(store, max_retries=20).process_all(100) for _ in range(4))
        )

        settled = [r.order_id for b in batches for r in b.results]
        assert len(settled) == 10
        assert len(set(settled)) == 10
        assert all(r.success for b in batches for r in b.results)
        assert store.curves["ACME"].total_usdp == Decimal("100.00")
        assert store.curves["ACME"].version == 10
        assert len(store.transactions) == 10

    async def test_random_interleaving_reconciles(self, store: FakeStore) -> None:
        rng = random.Random(2024)
        store.add_curve("BETA", base_price="0.50", price_step="0.002")
        users = [f"user-{i}" for i in range(6)]
        for user in users:
            store.balances[user] = Decimal("200.00")

        initial_usdp = sum(store.balances.values())
        for round_no in range(4):
            for user in users:
                ticker = rng.choice(["ACME", "BETA"])
                holding = store.holdings.get((user, ticker))
                if holding and holding.pv_amount > 1 and rng.random() < 0.5:
                    qty = (holding.pv_amount / 2).quantize(Decimal("0.000001"))
                    store.add_order(user, ticker, "sell", str(qty))
                else:
                    amount = Decimal(rng.randint(100, 4000)) / 100
                    store.add_order(user, ticker, "buy", str(amount))

            await asyncio.gather(
                *(_drainer(store, max_retries=50).process_all(100) for _ in range(3))
            )

        completed = [tx for tx in store.transactions if tx.status == "completed"]
        for ticker in ("ACME", "BETA"):
            curve = store.curves[ticker]
            bought = sum(
                (tx.amount_usdp for tx in completed if tx.ticker == ticker and tx.direction == "buy"),
                Decimal(0),
            )
            paid_out = sum(
                (tx.amount_usdp for tx in completed if tx.ticker == ticker and tx.direction == "sell"),
                Decimal(0),
            )
            held = sum(
                (h.pv_amount for (_, t), h in store.holdings.items() if t == ticker), Decimal(0)
            )
            assert curve.total_usdp == bought - paid_out
            assert curve.total_usdp >= 0
            assert curve.current_supply == held
            assert curve.current_price == curve.recomputed_price

        # USDP only moves between users and curves
        curves_usdp = sum(c.total_usdp for c in store.curves.values())
        assert sum(store.balances.values()) + curves_usdp == initial_usdp
        assert all(b >= 0 for b in store.balances.values())
        assert all(o.is_terminal for o in store.orders.values())
