"""BatchDrainer — the entry points every trigger adapter calls.

The HTTP endpoint, the database-insert webhook and the CLI worker all share
this class; none of them is assumed to be the only caller, and any number may
drain concurrently (claims are exclusive, curve writes are optimistic).
"""
import asyncio
import logging

from config.settings import settings
from src.pv_common.database import async_session_factory
from src.pv_common.datetime_utils import utc_seconds_ago
from src.pv_common.errors import StoreUnavailableError
from src.pv_queue.application.service import OrderQueueService
from src.pv_queue.domain.models import Order
from src.pv_settlement.application.processor import OrderProcessor, SessionFactory
from src.pv_settlement.domain.models import BatchResult, BatchSummary, ProcessResult

logger = logging.getLogger(__name__)


class BatchDrainer:
    def __init__(
        self,
        processor: OrderProcessor | None = None,
        queue: OrderQueueService | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self._session_factory: SessionFactory = session_factory or async_session_factory
        self._processor = processor or OrderProcessor(session_factory=self._session_factory)
        self._queue = queue or OrderQueueService()

    async def process_next(self) -> ProcessResult | None:
        """Process exactly one order; None if nothing was pending."""
        return await self._processor.process_one()

    async def process_all(self, max_batch: int | None = None) -> BatchResult:
        """Process until the queue is empty or max_batch orders have been handled."""
        limit = max_batch if max_batch is not None else settings.DEFAULT_MAX_BATCH
        if limit < 1:
            raise ValueError(f"max_batch must be >= 1, got {limit}")

        batch = BatchResult()
        try:
            for _ in range(limit):
                result = await self._processor.process_one()
                if result is None:
                    break
                batch.results.append(result)
                batch.summary.add(result)
        except StoreUnavailableError:
            logger.error(
                "Batch aborted by store failure after %d orders (%d successful, %d failed): %s",
                batch.summary.total, batch.summary.successful, batch.summary.failed,
                ", ".join(f"{r.order_id}={'ok' if r.success else r.error}" for r in batch.results)
                or "none",
            )
            raise

        if batch.summary.total:
            logger.info(
                "Batch done: %d processed, %d successful, %d failed",
                batch.summary.total, batch.summary.successful, batch.summary.failed,
            )
        return batch

    async def pending_order_count(self) -> int:
        async with self._session_factory() as db:
            return await self._queue.pending_count(db)

    async def stuck_orders(self, older_than_seconds: int | None = None) -> list[Order]:
        """Orders stuck in processing; reported for operator attention only."""
        seconds = (
            older_than_seconds if older_than_seconds is not None else settings.STUCK_ORDER_SECONDS
        )
        async with self._session_factory() as db:
            stuck = await self._queue.stuck_orders(db, utc_seconds_ago(seconds))
        for order in stuck:
            logger.warning(
                "Order %s stuck in processing since %s; needs manual review",
                order.id, order.updated_at,
            )
        return stuck

    async def run_forever(
        self,
        stop: asyncio.Event,
        poll_interval: float | None = None,
        max_batch: int | None = None,
    ) -> BatchSummary:
        """Drain, sleep while idle, repeat until `stop` is set. Returns cumulative totals."""
        interval = poll_interval if poll_interval is not None else settings.WORKER_POLL_INTERVAL
        totals = BatchSummary()
        while not stop.is_set():
            batch = await self.process_all(max_batch)
            totals.total += batch.summary.total
            totals.successful += batch.summary.successful
            totals.failed += batch.summary.failed
            if batch.summary.total == 0:
                try:
                    await asyncio.wait_for(stop.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass
        return totals


_drainer: BatchDrainer | None = None


def get_batch_drainer() -> BatchDrainer:
    global _drainer  # noqa: PLW0603
    if _drainer is None:
        _drainer = BatchDrainer()
    return _drainer
