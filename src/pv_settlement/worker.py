"""Command-line trigger for the settlement engine.

    pv-worker                     process one order and exit
    pv-worker --all               drain up to --max-batch orders and exit
    pv-worker --continuous        drain, sleep --interval seconds when idle, repeat

Suitable for cron (one-shot / --all) or a long-running container (--continuous).
SIGINT / SIGTERM stop the continuous loop after the current order.
"""
import asyncio
import logging
import signal

import click

from config.settings import settings
from src.pv_common.database import engine
from src.pv_common.errors import AppError
from src.pv_settlement.application.drainer import BatchDrainer
from src.pv_settlement.domain.models import BatchSummary

logger = logging.getLogger(__name__)


def _echo_summary(summary: BatchSummary) -> None:
    click.echo(
        f"Processed {summary.total} orders: "
        f"{summary.successful} successful, {summary.failed} failed"
    )


async def _run(
    drainer: BatchDrainer,
    drain_all: bool,
    continuous: bool,
    interval: float,
    max_batch: int,
) -> None:
    try:
        if continuous:
            stop = asyncio.Event()
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, stop.set)
            logger.info("Worker started (interval=%.1fs, max_batch=%d)", interval, max_batch)
            totals = await drainer.run_forever(stop, poll_interval=interval, max_batch=max_batch)
            logger.info("Worker stopped")
            _echo_summary(totals)
        elif drain_all:
            batch = await drainer.process_all(max_batch)
            for result in batch.results:
                status = "ok" if result.success else f"failed ({result.error})"
                click.echo(f"{result.order_id}: {status} - {result.message}")
            _echo_summary(batch.summary)
        else:
            result = await drainer.process_next()
            if result is None:
                click.echo("No pending orders to process")
            else:
                status = "ok" if result.success else f"failed ({result.error})"
                click.echo(f"{result.order_id}: {status} - {result.message}")
    finally:
        await engine.dispose()


@click.command()
@click.option("--all", "drain_all", is_flag=True, help="Drain the queue up to --max-batch orders.")
@click.option("--continuous", is_flag=True, help="Keep draining until interrupted.")
@click.option(
    "--interval",
    type=click.FloatRange(min=0.0, min_open=True),
    default=None,
    help="Idle poll interval in seconds (continuous mode).",
)
@click.option(
    "--max-batch",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum orders per drain.",
)
def main(
    drain_all: bool, continuous: bool, interval: float | None, max_batch: int | None
) -> None:
    """Process pending orders from the settlement queue."""
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    batch_limit = min(max_batch or settings.DEFAULT_MAX_BATCH, settings.MAX_BATCH_LIMIT)
    poll = interval if interval is not None else settings.WORKER_POLL_INTERVAL
    try:
        asyncio.run(_run(BatchDrainer(), drain_all, continuous, poll, batch_limit))
    except AppError as exc:
        raise click.ClickException(exc.message) from exc


if __name__ == "__main__":
    main()
